# app/core/config.py

import os # 'os' 모듈: 환경 변수를 읽기 위해 사용합니다.


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명/검증에 사용되는 비밀 키입니다. 토큰 발급은 외부 인증 서버가 담당합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # --- MQTT 브로커 연결 설정 ---
    MQTT_ENABLED = _env_bool('MQTT_ENABLED', True)
    MQTT_BROKER_HOST = os.getenv('MQTT_BROKER_HOST', 'localhost')
    MQTT_BROKER_PORT = int(os.getenv('MQTT_BROKER_PORT', 1883))
    MQTT_USERNAME = os.getenv('MQTT_USERNAME', '')
    MQTT_PASSWORD = os.getenv('MQTT_PASSWORD', '')
    MQTT_CLIENT_ID_PREFIX = os.getenv('MQTT_CLIENT_ID_PREFIX', 'pet_tracker_server')
    MQTT_KEEPALIVE = int(os.getenv('MQTT_KEEPALIVE', 60))
    # 재연결은 고정 간격으로 무제한 시도합니다 (지수 백오프 없음).
    MQTT_RECONNECT_PERIOD = int(os.getenv('MQTT_RECONNECT_PERIOD', 5))
    MQTT_CONNECT_TIMEOUT = float(os.getenv('MQTT_CONNECT_TIMEOUT', 30))
    # 수신 메시지 처리 워커 수 (디바이스 단위로 순서 보장)
    MQTT_WORKER_COUNT = int(os.getenv('MQTT_WORKER_COUNT', 4))

    # --- 디바이스로 전송되는 설정 값 ---
    SERVER_URL = os.getenv('SERVER_URL', 'http://localhost:5000')
    DEVICE_UPDATE_INTERVAL_MS = int(os.getenv('DEVICE_UPDATE_INTERVAL_MS', 30000))

    # 상태 보고/안전 구역 변경 후 설정을 다시 보내기 전 대기 시간(초)
    CONFIG_DISPATCH_DELAY_SECONDS = float(os.getenv('CONFIG_DISPATCH_DELAY_SECONDS', 1.0))

    # 안전 구역 개수 제한: 경고 기준과 강제 정리 기준
    SAFE_ZONE_WARN_THRESHOLD = int(os.getenv('SAFE_ZONE_WARN_THRESHOLD', 20))
    SAFE_ZONE_HARD_LIMIT = int(os.getenv('SAFE_ZONE_HARD_LIMIT', 30))


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'testing-secret-key-for-jwt-signing')
    # 테스트에서는 실제 브로커에 연결하지 않습니다.
    MQTT_ENABLED = False
    CONFIG_DISPATCH_DELAY_SECONDS = 0.0


class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('PROD_FIREBASE_CREDENTIALS_PATH')


# FLASK_ENV 값에 따라 create_app에서 적절한 설정 클래스를 선택하는 데 사용됩니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
