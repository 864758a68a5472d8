# app/api/devices/services.py
import logging
from dataclasses import asdict
from typing import Dict, Any, List, Optional
from firebase_admin import firestore

from app.models.device import Device
from app.utils.datetime_utils import DateTimeUtils


class DeviceService:
    """
    Device Registry 관리 서비스.
    'devices' 컬렉션의 문서 ID 를 device_id 로 사용하며, 모든 변경은 단일 문서 update 입니다.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.devices_ref = self.db.collection('devices')
        self.pets_ref = self.db.collection('pets')
        logging.info("DeviceService initialized.")

    # --- 조회 ---
    def get_device(self, device_id: str) -> Optional[Device]:
        doc = self.devices_ref.document(device_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        data['device_id'] = device_id
        return Device.from_dict(data)

    def get_active_device(self, device_id: str) -> Optional[Device]:
        device = self.get_device(device_id)
        if device and device.is_active:
            return device
        return None

    def get_owned_device(self, device_id: str, owner_id: str) -> Device:
        """[소유자 전용] 디바이스를 조회합니다. 없거나 소유자가 다르면 PermissionError."""
        device = self.get_device(device_id)
        if not device or device.owner_id != owner_id:
            raise PermissionError("디바이스를 찾을 수 없거나 접근 권한이 없습니다.")
        return device

    def find_active_devices_for_pet(self, pet_id: str) -> List[Device]:
        query = self.devices_ref.where('pet_id', '==', pet_id).where('is_active', '==', True)
        devices = []
        for doc in query.stream():
            data = doc.to_dict()
            data['device_id'] = doc.id
            devices.append(Device.from_dict(data))
        return devices

    def list_devices_for_owner(self, owner_id: str) -> List[Device]:
        docs = self.devices_ref.where('owner_id', '==', owner_id).stream()
        devices = []
        for doc in docs:
            data = doc.to_dict()
            data['device_id'] = doc.id
            devices.append(Device.from_dict(data))
        # 최근 통신한 디바이스가 먼저 오도록 정렬
        devices.sort(key=lambda d: d.last_seen or d.created_at, reverse=True)
        return devices

    # --- 등록/비활성화 (소유자 요청) ---
    def register_device(self, owner_id: str, device_data: Dict[str, Any]) -> Device:
        """
        디바이스를 소유자의 반려동물에 연결합니다 (upsert).
        재연결 시 config_sent 를 초기화해 다음 트리거에서 설정이 다시 전송되도록 합니다.
        """
        device_id = device_data['device_id']
        pet_id = device_data['pet_id']

        pet_doc = self.pets_ref.document(pet_id).get()
        if not pet_doc.exists or pet_doc.to_dict().get('user_id') != owner_id:
            raise PermissionError("반려동물을 찾을 수 없거나 접근 권한이 없습니다.")

        device_ref = self.devices_ref.document(device_id)
        existing = self.get_device(device_id)
        if existing and existing.is_active and existing.owner_id and existing.owner_id != owner_id:
            raise PermissionError("이미 다른 사용자에게 등록된 디바이스입니다.")

        now = DateTimeUtils.now()
        if existing:
            update_data = {
                'pet_id': pet_id,
                'owner_id': owner_id,
                'is_active': True,
                'config_sent': False,
                'updated_at': now,
            }
            for key in ('description', 'firmware_version'):
                if device_data.get(key) is not None:
                    update_data[key] = device_data[key]
            device_ref.update(DateTimeUtils.for_firestore(update_data))
            logging.info(f"Device {device_id} re-linked to pet {pet_id} (owner {owner_id})")
        else:
            new_device = Device(
                device_id=device_id, pet_id=pet_id, owner_id=owner_id,
                description=device_data.get('description') or "",
                firmware_version=device_data.get('firmware_version') or "1.0.0",
                created_at=now, updated_at=now
            )
            device_ref.set(DateTimeUtils.for_firestore(asdict(new_device)))
            logging.info(f"Device {device_id} registered for pet {pet_id} (owner {owner_id})")

        return self.get_device(device_id)

    def deactivate_device(self, device_id: str, owner_id: str) -> Device:
        """디바이스는 삭제하지 않고 비활성화만 합니다."""
        self.get_owned_device(device_id, owner_id)
        self.devices_ref.document(device_id).update({
            'is_active': False,
            'updated_at': DateTimeUtils.now(),
        })
        logging.info(f"Device {device_id} deactivated by owner {owner_id}")
        return self.get_device(device_id)

    # --- 동기화 코어에서 사용하는 원자적 필드 업데이트 ---
    def touch_last_seen(self, device_id: str):
        self.devices_ref.document(device_id).update({'last_seen': DateTimeUtils.now()})

    def record_status(self, device_id: str, status: Dict[str, Any]):
        """정규화된 상태 레코드를 반영합니다. 값이 없는 필드는 덮어쓰지 않습니다."""
        now = DateTimeUtils.now()
        update_data: Dict[str, Any] = {'last_seen': now}
        if status.get('battery_level') is not None:
            update_data['battery_level'] = status['battery_level']
        if status.get('signal_strength') is not None:
            update_data['signal_strength'] = status['signal_strength']
        if status.get('firmware_version'):
            update_data['firmware_version'] = status['firmware_version']
        if status.get('config_received'):
            update_data['config_acknowledged_at'] = now
        self.devices_ref.document(device_id).update(update_data)
        logging.info(f"Status updated for {device_id}: {sorted(update_data.keys())}")

    def mark_config_sent(self, device_id: str):
        self.devices_ref.document(device_id).update({
            'config_sent': True,
            'last_config_sent': DateTimeUtils.now(),
        })
