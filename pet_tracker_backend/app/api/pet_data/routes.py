# app/api/pet_data/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.utils.datetime_utils import DateTimeUtils
from .schemas import PetDataQuerySchema, PetDataIngestSchema, PetDataResponseSchema

pet_data_bp = Blueprint('pet_data_bp', __name__)

@pet_data_bp.route('/', methods=['POST'], strict_slashes=False)
def submit_pet_data():
    """
    [디바이스용, 인증 없음] HTTP 로 위치 샘플을 저장합니다.
    활성 디바이스가 요청한 반려동물에 연결되어 있어야 합니다.
    """
    device_service = current_app.services['devices']
    telemetry_service = current_app.services['telemetry']
    try:
        data = PetDataIngestSchema().load(request.get_json(silent=True) or {})
        device = device_service.get_active_device(data['device_id'])
        if device is None or device.pet_id != data['pet_id']:
            return jsonify({"error_code": "DEVICE_NOT_LINKED",
                            "message": "등록되지 않았거나 해당 반려동물에 연결되지 않은 디바이스입니다."}), 403
        sample = telemetry_service.record_sample(device, data)
        device_service.touch_last_seen(device.device_id)
        return jsonify(PetDataResponseSchema().dump(telemetry_service.sample_to_dict(sample))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"Submit pet data API error: {e}", exc_info=True)
        return jsonify({"error_code": "SAVE_FAILED", "message": "위치 데이터 저장 중 오류가 발생했습니다."}), 500

@pet_data_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_my_pets_data():
    """보호자가 소유한 모든 반려동물의 최근 위치 샘플 100개를 최신순으로 조회합니다."""
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    telemetry_service = current_app.services['telemetry']
    try:
        pet_names = {pet.pet_id: pet.name for pet in pet_service.list_pets(user_id)}
        samples = telemetry_service.get_recent_for_pets(pet_names, limit=100)
        return jsonify({
            "data": PetDataResponseSchema(many=True).dump(samples),
            "count": len(samples),
        }), 200
    except Exception as e:
        logging.error(f"Get my pets data API error (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "위치 기록 조회 중 오류가 발생했습니다."}), 500

@pet_data_bp.route('/pet/<string:pet_id>', methods=['GET'])
@jwt_required()
def get_pet_data(pet_id: str):
    """반려동물의 위치 기록을 최신순으로 조회합니다 (start/end/limit)."""
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    telemetry_service = current_app.services['telemetry']
    try:
        query = PetDataQuerySchema().load(request.args.to_dict())
        pet_service.get_pet_profile(pet_id, user_id)
        start = DateTimeUtils.validate_datetime_field(query['start'], 'start') if query['start'] else None
        end = DateTimeUtils.validate_datetime_field(query['end'], 'end') if query['end'] else None
        samples = telemetry_service.get_samples(pet_id, start=start, end=end, limit=query['limit'])
        return jsonify({
            "pet_id": pet_id,
            "data": PetDataResponseSchema(many=True).dump(samples),
            "count": len(samples),
        }), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Get pet data API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "위치 기록 조회 중 오류가 발생했습니다."}), 500

@pet_data_bp.route('/pet/<string:pet_id>/latest', methods=['GET'])
@jwt_required()
def get_latest_pet_data(pet_id: str):
    user_id = get_jwt_identity()
    pet_service = current_app.services['pets']
    telemetry_service = current_app.services['telemetry']
    try:
        pet_service.get_pet_profile(pet_id, user_id)
        latest = telemetry_service.get_latest(pet_id)
        if latest is None:
            return jsonify({"error_code": "NO_DATA", "message": "아직 수신된 위치 데이터가 없습니다."}), 404
        return jsonify(PetDataResponseSchema().dump(latest)), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Get latest pet data API error (pet_id: {pet_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "최신 위치 조회 중 오류가 발생했습니다."}), 500
