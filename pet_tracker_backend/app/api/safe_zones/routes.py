# app/api/safe_zones/routes.py
"""
반려동물 안전 구역 API. /api/pets/<pet_id>/safe-zones 하위에 등록됩니다.
모든 변경은 일관성 규칙 적용 후 연결된 디바이스에 설정 재전송을 예약합니다.
"""
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from .schemas import SafeZoneCreateSchema, SafeZoneUpdateSchema, SafeZoneResponseSchema

safe_zones_bp = Blueprint('safe_zones_bp', __name__)

@safe_zones_bp.route('/<string:pet_id>/safe-zones', methods=['GET'])
@jwt_required()
def list_safe_zones(pet_id: str):
    user_id = get_jwt_identity()
    safe_zone_service = current_app.services['safe_zones']
    try:
        _, zones = safe_zone_service.list_zones(pet_id, user_id)
        return jsonify({
            "pet_id": pet_id,
            "safe_zones": SafeZoneResponseSchema(many=True).dump([zone.to_dict() for zone in zones]),
            "total": len(zones),
        }), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"List safe zones API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "안전 구역 조회 중 오류가 발생했습니다."}), 500

@safe_zones_bp.route('/<string:pet_id>/safe-zones', methods=['POST'])
@jwt_required()
def create_safe_zone(pet_id: str):
    user_id = get_jwt_identity()
    safe_zone_service = current_app.services['safe_zones']
    try:
        zone_data = SafeZoneCreateSchema().load(request.get_json() or {})
        zone = safe_zone_service.create_zone(pet_id, user_id, zone_data)
        return jsonify(SafeZoneResponseSchema().dump(zone.to_dict())), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Create safe zone API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "안전 구역 생성 중 오류가 발생했습니다."}), 500

@safe_zones_bp.route('/<string:pet_id>/safe-zones/<string:zone_id>', methods=['PUT'])
@jwt_required()
def update_safe_zone(pet_id: str, zone_id: str):
    """안전 구역 부분 업데이트. is_primary=true 이면 해당 구역만 대표 구역이 됩니다."""
    user_id = get_jwt_identity()
    safe_zone_service = current_app.services['safe_zones']
    try:
        updates = SafeZoneUpdateSchema().load(request.get_json() or {})
        zone = safe_zone_service.update_zone(pet_id, user_id, zone_id, updates)
        return jsonify(SafeZoneResponseSchema().dump(zone.to_dict())), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except FileNotFoundError as e:
        return jsonify({"error_code": "SAFE_ZONE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Update safe zone API error (zone_id: {zone_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "안전 구역 수정 중 오류가 발생했습니다."}), 500

@safe_zones_bp.route('/<string:pet_id>/safe-zones/<string:zone_id>/toggle', methods=['PATCH'])
@jwt_required()
def toggle_safe_zone(pet_id: str, zone_id: str):
    user_id = get_jwt_identity()
    safe_zone_service = current_app.services['safe_zones']
    try:
        zone = safe_zone_service.toggle_zone(pet_id, user_id, zone_id)
        return jsonify(SafeZoneResponseSchema().dump(zone.to_dict())), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except FileNotFoundError as e:
        return jsonify({"error_code": "SAFE_ZONE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Toggle safe zone API error (zone_id: {zone_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "안전 구역 상태 변경 중 오류가 발생했습니다."}), 500

@safe_zones_bp.route('/<string:pet_id>/safe-zones/<string:zone_id>', methods=['DELETE'])
@jwt_required()
def delete_safe_zone(pet_id: str, zone_id: str):
    user_id = get_jwt_identity()
    safe_zone_service = current_app.services['safe_zones']
    try:
        safe_zone_service.delete_zone(pet_id, user_id, zone_id)
        return jsonify({"message": "안전 구역이 삭제되었습니다."}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except FileNotFoundError as e:
        return jsonify({"error_code": "SAFE_ZONE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Delete safe zone API error (zone_id: {zone_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "안전 구역 삭제 중 오류가 발생했습니다."}), 500
