# app/models/pet_data.py
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

MOVING_SPEED_THRESHOLD = 0.5  # m/s
PLAYING_ACCEL_THRESHOLD = 2.5

class ActivityType(Enum):
    """속도와 가속도로부터 추정한 활동 유형"""
    RESTING = "resting"
    WALKING = "walking"
    RUNNING = "running"
    PLAYING = "playing"
    UNKNOWN = "unknown"

@dataclass
class PetData:
    """
    Firestore 'pet_data' 컬렉션 문서 구조 (Telemetry Store).
    추가 전용이며 저장 후에는 수정/삭제되지 않습니다.
    """
    sample_id: str
    pet_id: str
    device_id: str
    timestamp: datetime
    latitude: float
    longitude: float
    speed: float = 0.0
    altitude: Optional[float] = None
    accuracy: Optional[float] = None
    # MPU6050 가속도/자이로 값 (있을 때만 저장)
    accel_x: Optional[float] = None
    accel_y: Optional[float] = None
    accel_z: Optional[float] = None
    gyro_x: Optional[float] = None
    gyro_y: Optional[float] = None
    gyro_z: Optional[float] = None
    battery_level: Optional[float] = None
    signal_strength: Optional[float] = None
    temperature: Optional[float] = None
    is_moving: bool = False
    activity_type: str = ActivityType.UNKNOWN.value

    @property
    def accel_magnitude(self) -> float:
        if self.accel_x is None or self.accel_y is None or self.accel_z is None:
            return 0.0
        return math.sqrt(self.accel_x ** 2 + self.accel_y ** 2 + self.accel_z ** 2)

    def derive_motion(self) -> None:
        """저장 직전에 이동 여부와 활동 유형을 계산합니다."""
        if self.speed is None:
            return
        self.is_moving = self.speed > MOVING_SPEED_THRESHOLD

        if self.speed < 0.1:
            activity = ActivityType.RESTING
        elif self.speed < 2:
            activity = ActivityType.WALKING
        elif self.speed < 5:
            activity = ActivityType.RUNNING
        else:
            activity = ActivityType.PLAYING

        if self.accel_magnitude > PLAYING_ACCEL_THRESHOLD:
            activity = ActivityType.PLAYING
        self.activity_type = activity.value
