# conftest.py
"""
공용 pytest 픽스처

- FakeFirestore: 서비스가 사용하는 Firestore API 일부를 흉내내는 메모리 저장소
- app / client: Firebase 초기화 없이 테스트 설정으로 만든 Flask 앱
- auth_headers: JWT 인증 헤더 생성
"""

import copy
import itertools

import pytest
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import NotFound

from app import create_app
from app.utils.datetime_utils import DateTimeUtils

_OPERATORS = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '>=': lambda a, b: a is not None and a >= b,
    '<=': lambda a, b: a is not None and a <= b,
    '>': lambda a, b: a is not None and a > b,
    '<': lambda a, b: a is not None and a < b,
    'in': lambda a, b: a in b,
}


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentRef:
    def __init__(self, docs, doc_id):
        self._docs = docs
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self.id, self._docs.get(self.id))

    def set(self, data, merge=False):
        if merge and self.id in self._docs:
            self._docs[self.id].update(copy.deepcopy(data))
        else:
            self._docs[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self.id}")
        self._docs[self.id].update(copy.deepcopy(data))

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, docs, filters=(), order=None, limit_count=None):
        self._docs = docs
        self._filters = list(filters)
        self._order = order
        self._limit = limit_count

    def where(self, field, op, value):
        return FakeQuery(self._docs, self._filters + [(field, op, value)], self._order, self._limit)

    def order_by(self, field, direction='ASCENDING'):
        return FakeQuery(self._docs, self._filters, (field, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._docs, self._filters, self._order, count)

    def stream(self):
        matches = [
            (doc_id, data) for doc_id, data in self._docs.items()
            if all(_OPERATORS[op](data.get(field), value) for field, op, value in self._filters)
        ]
        if self._order:
            field, direction = self._order
            matches = [m for m in matches if m[1].get(field) is not None]
            matches.sort(key=lambda m: m[1][field], reverse=(direction == 'DESCENDING'))
        if self._limit is not None:
            matches = matches[:self._limit]
        return iter([FakeSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in matches])


class FakeCollection(FakeQuery):
    _auto_ids = itertools.count(1)

    def __init__(self, docs):
        super().__init__(docs)

    def document(self, doc_id=None):
        return FakeDocumentRef(self._docs, doc_id or f"auto-{next(self._auto_ids)}")


class FakeFirestore:
    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return FakeCollection(self.collections.setdefault(name, {}))

    def raw(self, name, doc_id):
        """테스트 검증용: 저장된 문서 원본."""
        return self.collections.get(name, {}).get(doc_id)


class ImmediateScheduler:
    """지연 전송을 기록하고 즉시 실행하는 스케줄러."""
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append(delay)
        callback()


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def app(fake_db):
    app = create_app('testing', db=fake_db)
    app.services['sync'].scheduler = ImmediateScheduler()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def published(app, monkeypatch):
    """MQTT 발행을 가로채 (device_id, config) 목록으로 기록합니다."""
    sent = []

    def fake_publish(device_id, config):
        sent.append((device_id, config))
        return True

    monkeypatch.setattr(app.services['mqtt'], 'publish_config', fake_publish)
    return sent


@pytest.fixture
def auth_headers(app):
    def _make(user_id='owner-1'):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _make


@pytest.fixture
def seed(fake_db):
    """보호자, 반려동물, 디바이스 문서를 저장소에 직접 생성하는 헬퍼."""
    class Seeder:
        def user(self, user_id='owner-1', phone='+84901234567', name='Minh'):
            fake_db.collection('users').document(user_id).set({
                'user_id': user_id, 'email': f'{user_id}@example.com',
                'name': name, 'phone': phone, 'join_date': DateTimeUtils.now(),
            })

        def pet(self, pet_id='pet-1', user_id='owner-1', name='Bori', safe_zones=None):
            fake_db.collection('pets').document(pet_id).set({
                'pet_id': pet_id, 'user_id': user_id, 'name': name,
                'species': 'dog', 'safe_zones': safe_zones or [],
                'created_at': DateTimeUtils.now(),
            })

        def device(self, device_id='TRACKER-001', pet_id='pet-1', owner_id='owner-1',
                   is_active=True, config_sent=False):
            now = DateTimeUtils.now()
            fake_db.collection('devices').document(device_id).set({
                'device_id': device_id, 'pet_id': pet_id, 'owner_id': owner_id,
                'is_active': is_active, 'config_sent': config_sent,
                'last_config_sent': None, 'last_seen': None,
                'firmware_version': '1.0.0', 'description': '',
                'created_at': now, 'updated_at': now,
            })

        def linked(self):
            self.user()
            self.pet()
            self.device()

    return Seeder()
