# app/api/users/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.users.schemas import UserProfileResponseSchema, UserProfileUpdateSchema

users_bp = Blueprint('users_bp', __name__)

@users_bp.route('/me', methods=['GET'])
@jwt_required()
def get_my_profile():
    """현재 로그인된 보호자의 프로필(연락처 포함)을 조회합니다."""
    user_id = get_jwt_identity()
    user_service = current_app.services['users']
    try:
        user = user_service.get_profile(user_id)
        return jsonify(UserProfileResponseSchema().dump(user)), 200
    except FileNotFoundError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"사용자 프로필 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "프로필 조회 중 오류가 발생했습니다."}), 500


@users_bp.route('/me', methods=['PATCH'])
@jwt_required()
def update_my_profile():
    """보호자 이름/연락처를 수정합니다."""
    user_id = get_jwt_identity()
    user_service = current_app.services['users']
    try:
        update_data = UserProfileUpdateSchema().load(request.get_json() or {})
        user = user_service.update_profile(user_id, update_data)
        return jsonify(UserProfileResponseSchema().dump(user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_PAYLOAD", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"사용자 프로필 수정 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "프로필 수정 중 서버 오류가 발생했습니다."}), 500
