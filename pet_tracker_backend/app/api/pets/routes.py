# app/api/pets/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from .schemas import PetRegistrationSchema, PetProfileResponseSchema

pets_bp = Blueprint('pets_bp', __name__)

@pets_bp.route('/my-pets', methods=['GET'])
@jwt_required()
def get_my_pets():
    """로그인한 보호자의 반려동물 목록을 조회합니다."""
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    try:
        pets = [pet_service.pet_to_dict(pet) for pet in pet_service.list_pets(user_id)]
        return jsonify(PetProfileResponseSchema(many=True).dump(pets)), 200
    except Exception as e:
        logging.error(f"Get my pets API error (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "반려동물 목록 조회 중 오류가 발생했습니다."}), 500

@pets_bp.route('/', methods=['POST'])
@jwt_required()
def register_pet():
    """반려동물 등록 API."""
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    try:
        validated_data = PetRegistrationSchema().load(request.get_json() or {})
        new_pet = pet_service.create_pet(user_id, validated_data)
        return jsonify(PetProfileResponseSchema().dump(pet_service.pet_to_dict(new_pet))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"Pet registration API error: {e}", exc_info=True)
        return jsonify({"error_code": "PET_REGISTRATION_FAILED", "message": str(e)}), 500

@pets_bp.route('/<string:pet_id>', methods=['GET'])
@jwt_required()
def get_pet_profile(pet_id: str):
    """[소유자 전용] 특정 반려동물의 전체 프로필 정보를 조회합니다."""
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    try:
        pet = pet_service.get_pet_profile(pet_id, user_id)
        return jsonify(PetProfileResponseSchema().dump(pet_service.pet_to_dict(pet))), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Get pet profile API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "프로필 조회 중 오류가 발생했습니다."}), 500

@pets_bp.route('/<string:pet_id>', methods=['DELETE'])
@jwt_required()
def delete_pet(pet_id: str):
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    try:
        pet_service.delete_pet(pet_id, user_id)
        return '', 204
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Delete pet API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "반려동물 삭제 중 오류가 발생했습니다."}), 500
