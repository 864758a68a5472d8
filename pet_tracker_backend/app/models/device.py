# app/models/device.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from app.utils.datetime_utils import DateTimeUtils


@dataclass
class Device:
    """
    Firestore 'devices' 컬렉션 문서 구조 (Device Registry).
    문서 ID가 곧 device_id 이므로 식별자당 문서는 최대 하나입니다.
    코어는 디바이스를 삭제하지 않고 is_active 로만 비활성화합니다.
    """
    device_id: str
    pet_id: Optional[str]
    owner_id: Optional[str]
    is_active: bool = True
    config_sent: bool = False
    last_config_sent: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    config_acknowledged_at: Optional[datetime] = None
    battery_level: Optional[float] = None
    signal_strength: Optional[float] = None
    firmware_version: str = "1.0.0"
    description: str = ""
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        processed_data = DateTimeUtils.from_firestore(data.copy())
        known = {f for f in cls.__dataclass_fields__}
        processed_data.setdefault('pet_id', None)
        processed_data.setdefault('owner_id', None)
        return cls(**{k: v for k, v in processed_data.items() if k in known})
