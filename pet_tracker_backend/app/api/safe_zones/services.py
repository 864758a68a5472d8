# app/api/safe_zones/services.py
import logging
import uuid
from typing import Dict, Any, List, Callable, Optional, Tuple
from firebase_admin import firestore

from app.models.pet import Pet, SafeZone, DEFAULT_RADIUS_METERS
from app.services.geofence_rules import enforce_safe_zone_rules, DEFAULT_WARN_THRESHOLD, DEFAULT_HARD_LIMIT
from app.utils.datetime_utils import DateTimeUtils

# 안전 구역이 변경된 pet_id 를 전달받는 콜백 (디바이스 설정 자동 재전송)
SafeZoneChangeCallback = Callable[[str], Any]


class SafeZoneService:
    """
    소유자의 안전 구역 CRUD 를 처리합니다.
    모든 변경은 일관성 규칙을 거쳐 Pet 문서의 safe_zones 배열 전체를 다시 저장하고,
    이후 연결된 디바이스로의 설정 재전송을 요청합니다.
    """
    def __init__(self, db=None,
                 on_change: Optional[SafeZoneChangeCallback] = None,
                 warn_threshold: int = DEFAULT_WARN_THRESHOLD,
                 hard_limit: int = DEFAULT_HARD_LIMIT):
        self.db = db or firestore.client()
        self.pets_ref = self.db.collection('pets')
        self.on_change = on_change
        self.warn_threshold = warn_threshold
        self.hard_limit = hard_limit
        logging.info("SafeZoneService initialized.")

    def _load_owned_pet(self, pet_id: str, user_id: str) -> Pet:
        doc = self.pets_ref.document(pet_id).get()
        if not doc.exists or doc.to_dict().get('user_id') != user_id:
            raise PermissionError("반려동물을 찾을 수 없거나 접근 권한이 없습니다.")
        pet_data = doc.to_dict()
        pet_data['pet_id'] = pet_id
        return Pet.from_dict(pet_data)

    def _find_zone(self, pet: Pet, zone_id: str) -> Tuple[int, SafeZone]:
        for index, zone in enumerate(pet.safe_zones):
            if zone.zone_id == zone_id:
                return index, zone
        raise FileNotFoundError("안전 구역을 찾을 수 없습니다.")

    def _save_zones(self, pet_id: str, zones: List[SafeZone]) -> List[SafeZone]:
        """규칙 적용 후 배열 전체를 저장하고, 변경 알림을 보냅니다."""
        normalized = enforce_safe_zone_rules(
            zones, warn_threshold=self.warn_threshold, hard_limit=self.hard_limit, pet_id=pet_id
        )
        self.pets_ref.document(pet_id).update(DateTimeUtils.for_firestore({
            'safe_zones': [zone.to_dict() for zone in normalized],
            'updated_at': DateTimeUtils.now(),
        }))
        self._notify_change(pet_id)
        return normalized

    def _notify_change(self, pet_id: str):
        # 디바이스 통지는 best-effort: 실패해도 저장 결과에는 영향이 없습니다.
        if not self.on_change:
            return
        try:
            self.on_change(pet_id)
        except Exception as e:
            logging.error(f"Auto-config trigger failed after safe zone change on pet {pet_id}: {e}", exc_info=True)

    def list_zones(self, pet_id: str, user_id: str) -> Tuple[Pet, List[SafeZone]]:
        pet = self._load_owned_pet(pet_id, user_id)
        return pet, pet.safe_zones

    def create_zone(self, pet_id: str, user_id: str, zone_data: Dict[str, Any]) -> SafeZone:
        pet = self._load_owned_pet(pet_id, user_id)
        now = DateTimeUtils.now()
        new_zone = SafeZone(
            zone_id=str(uuid.uuid4()),
            name=zone_data.get('name') or "Safe Zone",
            center_lat=zone_data['center']['lat'],
            center_lng=zone_data['center']['lng'],
            radius=zone_data.get('radius', DEFAULT_RADIUS_METERS),
            is_active=zone_data.get('is_active', True),
            is_primary=zone_data.get('is_primary', False),
            auto_created=zone_data.get('auto_created', False),
            created_at=now, updated_at=now,
        )
        zones = pet.safe_zones
        if new_zone.is_primary:
            for zone in zones:
                zone.is_primary = False
        zones.append(new_zone)

        self._save_zones(pet_id, zones)
        logging.info(f"Added safe zone {new_zone.zone_id} for pet {pet_id} (radius {new_zone.radius}m)")
        return new_zone

    def update_zone(self, pet_id: str, user_id: str, zone_id: str, updates: Dict[str, Any]) -> SafeZone:
        """
        부분 업데이트. center 는 lat/lng 단위로 병합합니다.
        is_primary=True 로 지정하면 다른 구역의 대표 지정은 해제됩니다.
        """
        pet = self._load_owned_pet(pet_id, user_id)
        _, zone = self._find_zone(pet, zone_id)

        center = updates.get('center') or {}
        if center.get('lat') is not None:
            zone.center_lat = center['lat']
        if center.get('lng') is not None:
            zone.center_lng = center['lng']
        for key in ('name', 'radius', 'is_active'):
            if key in updates and updates[key] is not None:
                setattr(zone, key, updates[key])

        if updates.get('is_primary') is True:
            for other in pet.safe_zones:
                other.is_primary = other is zone
        elif updates.get('is_primary') is False:
            zone.is_primary = False
        zone.updated_at = DateTimeUtils.now()

        self._save_zones(pet_id, pet.safe_zones)
        logging.info(f"Safe zone {zone_id} updated for pet {pet_id} with fields: {list(updates.keys())}")
        return zone

    def toggle_zone(self, pet_id: str, user_id: str, zone_id: str) -> SafeZone:
        pet = self._load_owned_pet(pet_id, user_id)
        _, zone = self._find_zone(pet, zone_id)
        zone.is_active = not zone.is_active
        zone.updated_at = DateTimeUtils.now()
        self._save_zones(pet_id, pet.safe_zones)
        logging.info(f"Safe zone {zone_id} {'activated' if zone.is_active else 'deactivated'} for pet {pet_id}")
        return zone

    def delete_zone(self, pet_id: str, user_id: str, zone_id: str):
        pet = self._load_owned_pet(pet_id, user_id)
        index, zone = self._find_zone(pet, zone_id)
        remaining = pet.safe_zones[:index] + pet.safe_zones[index + 1:]
        self._save_zones(pet_id, remaining)
        logging.info(f"Deleted safe zone {zone.name} ({zone_id}) from pet {pet_id}")
