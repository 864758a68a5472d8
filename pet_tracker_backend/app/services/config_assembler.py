# app/services/config_assembler.py
"""
디바이스 설정 페이로드 조립기.

매 전송마다 저장소의 최신 상태(디바이스, 반려동물, 보호자, 안전 구역)로 새로 만들며
캐시하지 않습니다. 해석 단계에서 하나라도 실패하면 페이로드를 만들지 않습니다.
"""

import logging
from typing import Dict, Any, Optional

from app.models.pet import SafeZone
from app.services.geofence_rules import select_active_zone
from app.services.mqtt_service import MessageKind, device_topic
from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

CONFIG_VERSION = "3.0"
DATA_FRESHNESS = "live"


def safe_zone_payload(zone: SafeZone) -> Dict[str, Any]:
    return {
        'zoneId': zone.zone_id,
        'name': zone.name,
        'center': {'lat': zone.center_lat, 'lng': zone.center_lng},
        'radius': zone.radius,
        'isActive': zone.is_active,
        'isPrimary': zone.is_primary,
        'autoCreated': zone.auto_created,
    }


class ConfigAssembler:
    def __init__(self, device_service, pet_service, user_service,
                 server_url: str,
                 update_interval_ms: int,
                 connection_settings: Dict[str, Any]):
        self.device_service = device_service
        self.pet_service = pet_service
        self.user_service = user_service
        self.server_url = server_url
        self.update_interval_ms = update_interval_ms
        self.connection_settings = connection_settings

    def assemble(self, device_id: str) -> Optional[Dict[str, Any]]:
        """
        device_id 에 대한 설정 페이로드를 만듭니다.

        1. 활성 디바이스 조회
        2. 디바이스의 반려동물과 보호자 조회 (보호자 연락처 필수)
        3. 안전 구역 배열을 저장소에서 다시 읽기
        4. 우선순위에 따라 전달할 안전 구역 선택

        Returns:
            설정 딕셔너리, 해석 실패 시 None
        """
        device = self.device_service.get_device(device_id)
        if device is None:
            logger.warning(f"Config aborted for {device_id}: device not registered")
            return None
        if not device.is_active:
            logger.info(f"Config aborted for {device_id}: device is inactive")
            return None
        if not device.pet_id:
            logger.warning(f"Config aborted for {device_id}: no pet linked")
            return None

        pet = self.pet_service.get_pet(device.pet_id)
        if pet is None:
            logger.warning(f"Config aborted for {device_id}: pet {device.pet_id} not found")
            return None

        owner = None
        for owner_id in (pet.user_id, device.owner_id):
            if owner_id:
                owner = self.user_service.get_user(owner_id)
                if owner is not None:
                    break
        if owner is None:
            logger.warning(f"Config aborted for {device_id}: owner not found")
            return None
        if not owner.phone:
            logger.warning(f"Config aborted for {device_id}: owner {owner.user_id} has no phone number")
            return None

        zones = self.pet_service.get_safe_zones(pet.pet_id)
        zone = select_active_zone(zones)

        return self._build_payload(device_id, pet, owner, zone)

    def _build_payload(self, device_id, pet, owner, zone: Optional[SafeZone]) -> Dict[str, Any]:
        now = DateTimeUtils.now()
        payload = {
            'deviceId': device_id,
            'petId': pet.pet_id,
            'petName': pet.name,
            'phoneNumber': owner.phone,
            'ownerName': owner.name or "Pet Owner",
            'serverUrl': self.server_url,
            'updateInterval': self.update_interval_ms,
            'timestamp': DateTimeUtils.to_iso_string(now),
            'configSentAt': DateTimeUtils.to_timestamp_ms(now),
            'dataFreshness': DATA_FRESHNESS,
            'configVersion': CONFIG_VERSION,
            'mqtt': dict(self.connection_settings, topics={
                kind.value: device_topic(device_id, kind) for kind in MessageKind
            }),
        }
        if zone is not None:
            payload['safeZone'] = safe_zone_payload(zone)
        return payload
