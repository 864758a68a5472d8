# app/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import atexit
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정
from app.core.config import config_by_name

# - API 블루프린트
from app.api.health.routes import health_bp
from app.api.users.routes import users_bp
from app.api.pets.routes import pets_bp
from app.api.safe_zones.routes import safe_zones_bp
from app.api.devices.routes import devices_bp
from app.api.pet_data.routes import pet_data_bp

# - 서비스 모듈
from app.api.users.services import UserService
from app.api.pets.services import PetService
from app.api.devices.services import DeviceService
from app.api.pet_data.services import TelemetryService
from app.api.safe_zones.services import SafeZoneService
from app.services.mqtt_service import MQTTService
from app.services.config_assembler import ConfigAssembler
from app.services.sync_coordinator import DeviceSyncCoordinator

def create_app(config_name=None, db=None):
    """
    Flask 애플리케이션 팩토리 함수.

    Args:
        config_name: 'development' | 'testing' | 'production' (기본값: FLASK_ENV)
        db: Firestore 클라이언트. 주어지면 Firebase 초기화를 건너뜁니다 (테스트용).
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            firebase_admin.initialize_app(credentials.Certificate(cred_path))
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 저장소 기반 도메인 서비스
    app.services['users'] = UserService(db=db)
    app.services['pets'] = PetService(db=db)
    app.services['devices'] = DeviceService(db=db)
    app.services['telemetry'] = TelemetryService(db=db)

    # 5-2. MQTT 채널 어댑터 (앱 전체에서 하나의 연결을 공유)
    mqtt_service = MQTTService(
        host=app.config['MQTT_BROKER_HOST'],
        port=app.config['MQTT_BROKER_PORT'],
        username=app.config['MQTT_USERNAME'],
        password=app.config['MQTT_PASSWORD'],
        client_id_prefix=app.config['MQTT_CLIENT_ID_PREFIX'],
        keepalive=app.config['MQTT_KEEPALIVE'],
        reconnect_period=app.config['MQTT_RECONNECT_PERIOD'],
        connect_timeout=app.config['MQTT_CONNECT_TIMEOUT'],
        worker_count=app.config['MQTT_WORKER_COUNT'],
    )
    app.services['mqtt'] = mqtt_service

    # 5-3. 설정 동기화 코어
    app.services['config_assembler'] = ConfigAssembler(
        device_service=app.services['devices'],
        pet_service=app.services['pets'],
        user_service=app.services['users'],
        server_url=app.config['SERVER_URL'],
        update_interval_ms=app.config['DEVICE_UPDATE_INTERVAL_MS'],
        connection_settings=mqtt_service.connection_settings(),
    )
    sync = DeviceSyncCoordinator(
        mqtt_service=mqtt_service,
        device_service=app.services['devices'],
        telemetry_service=app.services['telemetry'],
        config_assembler=app.services['config_assembler'],
        dispatch_delay=app.config['CONFIG_DISPATCH_DELAY_SECONDS'],
    )
    mqtt_service.add_message_handler(sync.handle_message)
    app.services['sync'] = sync

    # - 안전 구역 변경 시 연결된 디바이스로 설정 재전송
    app.services['safe_zones'] = SafeZoneService(
        db=db,
        on_change=sync.notify_safe_zones_changed,
        warn_threshold=app.config['SAFE_ZONE_WARN_THRESHOLD'],
        hard_limit=app.config['SAFE_ZONE_HARD_LIMIT'],
    )

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(health_bp)
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(pets_bp, url_prefix='/api/pets')
    app.register_blueprint(safe_zones_bp, url_prefix='/api/pets')
    app.register_blueprint(devices_bp, url_prefix='/api/devices')
    app.register_blueprint(pet_data_bp, url_prefix='/api/pet-data')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        if isinstance(err, HTTPException):
            return jsonify({"error_code": err.name.upper().replace(" ", "_"), "message": err.description}), err.code
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅, MQTT 연결 시작 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    if app.config['MQTT_ENABLED']:
        mqtt_service.start()
        atexit.register(mqtt_service.stop)
    else:
        logging.info("MQTT disabled by configuration, device sync runs over HTTP only.")

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
