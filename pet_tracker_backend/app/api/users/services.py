# app/api/users/services.py
import logging
from dataclasses import asdict
from typing import Dict, Any, Optional
from firebase_admin import firestore

from app.models.user import User
from app.utils.datetime_utils import DateTimeUtils


class UserService:
    """보호자(소유자) 프로필 조회 및 연락처 관리를 담당하는 서비스 클래스."""
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        logging.info("UserService initialized.")

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self.users_ref.document(user_id).get()
        if not doc.exists:
            return None
        user_data = DateTimeUtils.from_firestore(doc.to_dict())
        user_data['user_id'] = user_id
        known = {f for f in User.__dataclass_fields__}
        return User(**{k: v for k, v in user_data.items() if k in known})

    def get_profile(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise FileNotFoundError("사용자를 찾을 수 없습니다.")
        return user

    def update_profile(self, user_id: str, update_data: Dict[str, Any]) -> User:
        """
        이름/연락처를 부분 업데이트합니다.
        인증은 외부에서 처리되므로 문서가 없으면 새로 만듭니다 (merge 저장).
        """
        if not update_data:
            raise ValueError("수정할 데이터가 제공되지 않았습니다.")

        if not self.users_ref.document(user_id).get().exists:
            base = asdict(User(user_id=user_id))
            base.update(update_data)
            update_data = base
        self.users_ref.document(user_id).set(DateTimeUtils.for_firestore(update_data), merge=True)
        logging.info(f"User profile updated for {user_id} with fields: {list(update_data.keys())}")
        return self.get_profile(user_id)
