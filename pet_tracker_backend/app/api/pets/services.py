# app/api/pets/services.py
import logging
import uuid
from typing import Dict, Any, List, Optional
from firebase_admin import firestore

from app.models.pet import Pet, SafeZone
from app.utils.datetime_utils import DateTimeUtils


class PetService:
    """반려동물 프로필 관리 및 안전 구역 최신 상태 조회를 담당하는 서비스."""
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.pets_ref = self.db.collection('pets')
        logging.info("PetService initialized.")

    def get_pet(self, pet_id: str) -> Optional[Pet]:
        """소유권 검사 없이 Pet 객체를 조회합니다 (디바이스 설정 조립용)."""
        doc = self.pets_ref.document(pet_id).get()
        if not doc.exists:
            return None
        pet_data = doc.to_dict()
        pet_data['pet_id'] = pet_id
        return Pet.from_dict(pet_data)

    def get_pet_by_id_and_owner(self, pet_id: str, user_id: str) -> Optional[Pet]:
        pet = self.get_pet(pet_id)
        if pet and pet.user_id == user_id:
            return pet
        return None

    def get_pet_profile(self, pet_id: str, user_id: str) -> Pet:
        """[소유자 전용] 반려동물 프로필 정보를 조회합니다."""
        pet = self.get_pet_by_id_and_owner(pet_id, user_id)
        if not pet:
            raise PermissionError("프로필을 조회할 권한이 없거나 반려동물을 찾을 수 없습니다.")
        return pet

    def get_safe_zones(self, pet_id: str) -> List[SafeZone]:
        """
        안전 구역 배열을 저장소에서 다시 읽어옵니다.
        이전에 읽은 Pet 객체를 재사용하지 않으므로 동시 편집 결과가 반영됩니다.
        """
        doc = self.pets_ref.document(pet_id).get()
        if not doc.exists:
            return []
        return [SafeZone.from_dict(zone) for zone in doc.to_dict().get('safe_zones') or []]

    def list_pets(self, user_id: str) -> List[Pet]:
        pets = []
        for doc in self.pets_ref.where('user_id', '==', user_id).stream():
            pet_data = doc.to_dict()
            pet_data['pet_id'] = doc.id
            pets.append(Pet.from_dict(pet_data))
        return pets

    def create_pet(self, user_id: str, pet_data: Dict[str, Any]) -> Pet:
        pet_id = str(uuid.uuid4())
        new_pet = Pet(
            pet_id=pet_id, user_id=user_id,
            name=pet_data['name'],
            species=pet_data.get('species'),
            breed=pet_data.get('breed'),
            age=pet_data.get('age'),
        )
        try:
            self.pets_ref.document(pet_id).set(DateTimeUtils.for_firestore(new_pet.to_dict()))
        except Exception as e:
            logging.error(f"Pet creation failed for user {user_id}: {e}", exc_info=True)
            raise RuntimeError("반려동물 등록에 실패했습니다. 다시 시도해주세요.")
        logging.info(f"Pet {pet_id} created for user {user_id}")
        return new_pet

    def delete_pet(self, pet_id: str, user_id: str):
        if not self.get_pet_by_id_and_owner(pet_id, user_id):
            raise PermissionError("반려동물을 삭제할 권한이 없거나 반려동물을 찾을 수 없습니다.")
        self.pets_ref.document(pet_id).delete()
        logging.info(f"Pet {pet_id} deleted by user {user_id}")

    def pet_to_dict(self, pet: Pet) -> Dict[str, Any]:
        """응답 스키마에 전달하기 위해 Pet 객체를 딕셔너리로 변환합니다."""
        return pet.to_dict()
