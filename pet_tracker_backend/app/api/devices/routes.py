# app/api/devices/routes.py
import logging
from dataclasses import asdict
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from .schemas import DeviceRegistrationSchema, DeviceResponseSchema

devices_bp = Blueprint('devices_bp', __name__)

@devices_bp.route('/', methods=['POST'])
@jwt_required()
def register_device():
    """디바이스를 보호자의 반려동물에 연결하고, 설정 전송을 예약합니다."""
    user_id = get_jwt_identity()
    device_service = current_app.services['devices']
    sync = current_app.services['sync']
    try:
        device_data = DeviceRegistrationSchema().load(request.get_json() or {})
        device = device_service.register_device(user_id, device_data)
        sync.trigger_auto_config(device.device_id)
        return jsonify(DeviceResponseSchema().dump(asdict(device))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Device registration API error: {e}", exc_info=True)
        return jsonify({"error_code": "DEVICE_REGISTRATION_FAILED", "message": "디바이스 등록 중 오류가 발생했습니다."}), 500

@devices_bp.route('/', methods=['GET'])
@jwt_required()
def list_my_devices():
    user_id = get_jwt_identity()
    device_service = current_app.services['devices']
    try:
        devices = device_service.list_devices_for_owner(user_id)
        return jsonify(DeviceResponseSchema(many=True).dump([asdict(d) for d in devices])), 200
    except Exception as e:
        logging.error(f"List devices API error (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "FETCH_FAILED", "message": "디바이스 목록 조회 중 오류가 발생했습니다."}), 500

@devices_bp.route('/<string:device_id>/deactivate', methods=['PATCH'])
@jwt_required()
def deactivate_device(device_id: str):
    user_id = get_jwt_identity()
    device_service = current_app.services['devices']
    try:
        device = device_service.deactivate_device(device_id, user_id)
        return jsonify(DeviceResponseSchema().dump(asdict(device))), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Deactivate device API error (device_id: {device_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "디바이스 비활성화 중 오류가 발생했습니다."}), 500

@devices_bp.route('/<string:device_id>/push-config', methods=['POST'])
@jwt_required()
def push_config(device_id: str):
    """설정을 즉시 다시 전송합니다 (수동 트리거)."""
    user_id = get_jwt_identity()
    device_service = current_app.services['devices']
    sync = current_app.services['sync']
    try:
        device_service.get_owned_device(device_id, user_id)
        if not sync.dispatch_config(device_id, reason='manual'):
            return jsonify({"error_code": "CONFIG_NOT_SENT",
                            "message": "설정을 전송하지 못했습니다. 디바이스 상태와 보호자 연락처를 확인해주세요."}), 409
        return jsonify({"message": "설정이 전송되었습니다.", "device_id": device_id}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Push config API error (device_id: {device_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "설정 전송 중 오류가 발생했습니다."}), 500

@devices_bp.route('/<string:device_id>/retained-config', methods=['DELETE'])
@jwt_required()
def clear_retained_config(device_id: str):
    """브로커에 보존된 설정 메시지를 삭제합니다 (관리용 초기화)."""
    user_id = get_jwt_identity()
    device_service = current_app.services['devices']
    mqtt_service = current_app.services['mqtt']
    try:
        device_service.get_owned_device(device_id, user_id)
        if not mqtt_service.clear_retained_config(device_id):
            return jsonify({"error_code": "MQTT_UNAVAILABLE", "message": "MQTT 브로커에 연결되어 있지 않습니다."}), 503
        return jsonify({"message": "보존된 설정이 삭제되었습니다.", "device_id": device_id}), 200
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN_OR_NOT_FOUND", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Clear retained config API error (device_id: {device_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "보존 설정 삭제 중 오류가 발생했습니다."}), 500

@devices_bp.route('/config/<string:device_id>', methods=['GET'])
def get_device_config(device_id: str):
    """[디바이스용, 인증 없음] MQTT 로 전송되는 것과 동일한 설정 페이로드를 반환합니다."""
    config_assembler = current_app.services['config_assembler']
    try:
        config = config_assembler.assemble(device_id)
        if config is None:
            return jsonify({"error_code": "DEVICE_CONFIG_UNAVAILABLE",
                            "message": "등록되지 않았거나 비활성화된 디바이스입니다."}), 404
        return jsonify(config), 200
    except Exception as e:
        logging.error(f"Device config API error (device_id: {device_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "설정 조회 중 오류가 발생했습니다."}), 500
