# app/models/user.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from app.utils.datetime_utils import DateTimeUtils

@dataclass
class User:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    phone 은 디바이스 설정에 포함되는 보호자 연락처입니다.
    """
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    join_date: datetime = field(default_factory=DateTimeUtils.now)
