# app/models/pet.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any
import logging

from app.utils.datetime_utils import DateTimeUtils

# 안전 구역 반경 허용 범위 (미터)
MIN_RADIUS_METERS = 10
MAX_RADIUS_METERS = 5000
DEFAULT_RADIUS_METERS = 100


@dataclass
class SafeZone:
    """
    Pet 문서의 'safe_zones' 배열에 포함되는 원형 지오펜스.
    항상 소유 Pet 문서 안에만 존재하며 다른 곳에서 참조되지 않습니다.
    """
    zone_id: str
    center_lat: float
    center_lng: float
    name: str = "Safe Zone"
    radius: float = DEFAULT_RADIUS_METERS
    is_active: bool = True
    is_primary: bool = False
    auto_created: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SafeZone":
        """Firestore 배열 항목(center 하위 객체 포함)으로부터 SafeZone을 생성합니다."""
        processed = DateTimeUtils.from_firestore(dict(data))
        center = processed.pop('center', None) or {}
        now = DateTimeUtils.now()
        return cls(
            zone_id=processed.get('zone_id'),
            center_lat=float(center.get('lat', processed.get('center_lat', 0.0))),
            center_lng=float(center.get('lng', processed.get('center_lng', 0.0))),
            name=processed.get('name') or "Safe Zone",
            radius=processed.get('radius', DEFAULT_RADIUS_METERS),
            is_active=processed.get('is_active', True) is not False,
            is_primary=bool(processed.get('is_primary', False)),
            auto_created=bool(processed.get('auto_created', False)),
            created_at=processed.get('created_at') or now,
            updated_at=processed.get('updated_at') or now,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Firestore 저장 형식. 좌표는 center{lat, lng} 하위 객체로 묶습니다."""
        return {
            'zone_id': self.zone_id,
            'name': self.name,
            'center': {'lat': self.center_lat, 'lng': self.center_lng},
            'radius': self.radius,
            'is_active': self.is_active,
            'is_primary': self.is_primary,
            'auto_created': self.auto_created,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


@dataclass
class Pet:
    """
    Firestore 'pets' 컬렉션 문서 구조.
    반려동물의 기본 정보와 소유자가 편집하는 안전 구역 목록을 함께 보관합니다.
    """
    pet_id: str
    user_id: str
    name: str
    species: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[int] = None
    safe_zones: List[SafeZone] = field(default_factory=list)
    created_at: datetime = field(default_factory=DateTimeUtils.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pet":
        """Firestore에서 받은 딕셔너리로부터 Pet 인스턴스를 생성합니다."""
        processed_data = DateTimeUtils.from_firestore(data.copy())

        zones = []
        for raw_zone in processed_data.get('safe_zones') or []:
            try:
                zones.append(SafeZone.from_dict(raw_zone))
            except (TypeError, ValueError) as e:
                logging.warning(f"Skipping malformed safe zone on pet {processed_data.get('pet_id')}: {e}")
        processed_data['safe_zones'] = zones

        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in processed_data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        pet_dict = asdict(self)
        pet_dict['safe_zones'] = [zone.to_dict() for zone in self.safe_zones]
        return pet_dict
