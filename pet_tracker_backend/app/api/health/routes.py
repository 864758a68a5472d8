# app/api/health/routes.py
from flask import Blueprint, jsonify, current_app

from app.utils.datetime_utils import DateTimeUtils

health_bp = Blueprint('health_bp', __name__)

@health_bp.route('/health', methods=['GET'])
def health_check():
    """서버 및 MQTT 연결 상태 확인용 엔드포인트."""
    mqtt_service = current_app.services['mqtt']
    return jsonify({
        "status": "ok",
        "timestamp": DateTimeUtils.to_iso_string(DateTimeUtils.now()),
        "mqtt": mqtt_service.get_status(),
        "mqtt_enabled": current_app.config.get('MQTT_ENABLED', False),
    }), 200
