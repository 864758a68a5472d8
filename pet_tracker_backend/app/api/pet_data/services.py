# app/api/pet_data/services.py
import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Dict, Any, List, Optional
from firebase_admin import firestore

from app.models.device import Device
from app.models.pet_data import PetData
from app.utils.datetime_utils import DateTimeUtils

# Firestore 'in' 쿼리에 넣을 수 있는 최대 값 개수
IN_QUERY_LIMIT = 30


class TelemetryService:
    """위치/상태 샘플의 저장(추가 전용)과 조회를 전담하는 서비스 클래스 (Telemetry Store)."""
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.samples_ref = self.db.collection('pet_data')
        logging.info("TelemetryService initialized.")

    def record_sample(self, device: Device, location: Dict[str, Any]) -> PetData:
        """정규화된 위치 페이로드를 디바이스의 반려동물 샘플로 저장합니다."""
        sample = PetData(
            sample_id=str(uuid.uuid4()),
            pet_id=device.pet_id,
            device_id=device.device_id,
            timestamp=location.get('timestamp') or DateTimeUtils.now(),
            latitude=location['latitude'],
            longitude=location['longitude'],
            speed=location.get('speed') or 0.0,
            altitude=location.get('altitude'),
            accuracy=location.get('accuracy'),
            accel_x=location.get('accel_x'),
            accel_y=location.get('accel_y'),
            accel_z=location.get('accel_z'),
            gyro_x=location.get('gyro_x'),
            gyro_y=location.get('gyro_y'),
            gyro_z=location.get('gyro_z'),
            battery_level=location.get('battery_level'),
            signal_strength=location.get('signal_strength'),
            temperature=location.get('temperature'),
        )
        sample.derive_motion()

        self.samples_ref.document(sample.sample_id).set(DateTimeUtils.for_firestore(asdict(sample)))
        logging.info(f"Location saved for {device.device_id} -> pet {device.pet_id} ({sample.activity_type})")
        return sample

    def get_samples(self, pet_id: str,
                    start: Optional[datetime] = None,
                    end: Optional[datetime] = None,
                    limit: int = 100) -> List[Dict[str, Any]]:
        """기간 필터를 적용해 최신순으로 샘플을 조회합니다."""
        query = self.samples_ref.where('pet_id', '==', pet_id)
        if start:
            query = query.where('timestamp', '>=', start)
        if end:
            query = query.where('timestamp', '<=', end)
        query = query.order_by('timestamp', direction=firestore.Query.DESCENDING).limit(limit)
        return [self._serialize(doc.to_dict()) for doc in query.stream()]

    def get_latest(self, pet_id: str) -> Optional[Dict[str, Any]]:
        samples = self.get_samples(pet_id, limit=1)
        return samples[0] if samples else None

    def get_recent_for_pets(self, pet_names: Dict[str, str], limit: int = 100) -> List[Dict[str, Any]]:
        """
        여러 반려동물의 최근 샘플을 합쳐 최신순으로 반환합니다.
        Firestore 'in' 조건은 값 30개까지만 허용하므로 나누어 조회합니다.

        Args:
            pet_names: {pet_id: 반려동물 이름}
        """
        pet_ids = list(pet_names)
        records = []
        for i in range(0, len(pet_ids), IN_QUERY_LIMIT):
            query = (self.samples_ref
                     .where('pet_id', 'in', pet_ids[i:i + IN_QUERY_LIMIT])
                     .order_by('timestamp', direction=firestore.Query.DESCENDING)
                     .limit(limit))
            records.extend(DateTimeUtils.from_firestore(doc.to_dict()) for doc in query.stream())

        records.sort(key=lambda r: r['timestamp'], reverse=True)
        result = []
        for record in records[:limit]:
            record['pet_name'] = pet_names.get(record['pet_id'])
            result.append(self._serialize(record))
        return result

    def sample_to_dict(self, sample: PetData) -> Dict[str, Any]:
        return self._serialize(asdict(sample))

    def _serialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = DateTimeUtils.from_firestore(data)
        if isinstance(record.get('timestamp'), datetime):
            record['timestamp'] = DateTimeUtils.to_iso_string(record['timestamp'])
        return record
