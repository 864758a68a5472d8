# app/services/sync_coordinator.py
"""
디바이스 설정 동기화 코디네이터.

수신된 MQTT 메시지와 소유자의 안전 구역 변경을 분류하고,
디바이스에 설정을 다시 보낼지 결정합니다.

- 위치 수신: 샘플 저장 후 항상 즉시 재전송
- 상태 수신: needConfig 이거나 아직 설정을 보낸 적이 없을 때 지연 재전송
- 설정 요청: 무조건 즉시 재전송
- 안전 구역 변경: 연결된 활성 디바이스 모두에 지연 재전송 (best-effort)
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, Optional

from marshmallow import ValidationError

from app.schemas.telemetry_schema import LocationPayloadSchema, StatusPayloadSchema, ConfigRequestSchema
from app.services.mqtt_service import MessageKind, parse_topic

logger = logging.getLogger(__name__)

# (delay_seconds, callback) 를 받아 지연 실행을 예약하는 함수
Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class DeviceSyncCoordinator:
    location_schema = LocationPayloadSchema()
    status_schema = StatusPayloadSchema()
    config_request_schema = ConfigRequestSchema()

    def __init__(self, mqtt_service, device_service, telemetry_service, config_assembler,
                 dispatch_delay: float = 1.0,
                 scheduler: Optional[Scheduler] = None):
        self.mqtt_service = mqtt_service
        self.device_service = device_service
        self.telemetry_service = telemetry_service
        self.config_assembler = config_assembler
        self.dispatch_delay = dispatch_delay
        self.scheduler = scheduler or timer_scheduler

    # --- 수신 메시지 분류 ---
    def handle_message(self, topic: str, raw: bytes):
        """MQTT 메시지 핸들러. 어떤 경우에도 예외를 호출자에게 올리지 않습니다."""
        parsed = parse_topic(topic)
        if parsed is None:
            logger.warning(f"Unknown topic dropped: {topic}")
            return
        device_id, kind = parsed

        if not raw:
            # 보존 메시지 삭제(빈 페이로드) 에코
            logger.debug(f"Empty payload on {topic} ignored")
            return

        try:
            payload = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Malformed payload on {topic} dropped: {e}")
            return

        handlers = {
            MessageKind.LOCATION: self.handle_location,
            MessageKind.STATUS: self.handle_status,
            MessageKind.ALERT: self.handle_alert,
            MessageKind.CONFIG: self.handle_config_request,
        }
        try:
            handlers[kind](device_id, payload)
        except Exception:
            logger.exception(f"Error handling {kind.value} message from {device_id}")

    def handle_location(self, device_id: str, payload: Dict[str, Any]) -> bool:
        """
        위치 샘플을 저장하고 설정을 즉시 재전송합니다.
        저장 또는 last_seen 갱신에 실패하면 재전송하지 않습니다.
        """
        try:
            location = self.location_schema.load(payload)
        except ValidationError as err:
            logger.error(f"Invalid location payload from {device_id}: {err.messages}")
            return False

        device = self.device_service.get_active_device(device_id)
        if device is None:
            logger.warning(f"Location from unknown or inactive device {device_id} dropped")
            return False
        if not device.pet_id:
            logger.warning(f"Location from {device_id} dropped: no pet linked")
            return False

        try:
            self.telemetry_service.record_sample(device, location)
            self.device_service.touch_last_seen(device_id)
        except Exception as e:
            logger.error(f"Failed to store location for {device_id}: {e}", exc_info=True)
            return False

        # 전송 직후에는 디바이스가 구독 중이므로 가장 확실한 전달 시점
        self.dispatch_config(device_id, reason='location')
        return True

    def handle_status(self, device_id: str, payload: Dict[str, Any]) -> bool:
        try:
            status = self.status_schema.load(payload)
        except ValidationError as err:
            logger.error(f"Invalid status payload from {device_id}: {err.messages}")
            return False

        device = self.device_service.get_active_device(device_id)
        if device is None:
            logger.warning(f"Status from unknown or inactive device {device_id} dropped")
            return False

        self.device_service.record_status(device_id, status)
        if status['config_received']:
            logger.info(f"Device {device_id} acknowledged config")

        if status['need_config'] or not device.config_sent:
            logger.info(f"Device {device_id} needs config (needConfig={status['need_config']}, "
                        f"configSent={device.config_sent})")
            self.schedule_dispatch(device_id, reason='status')
            return True
        return False

    def handle_alert(self, device_id: str, payload: Any):
        logger.warning(f"Alert from {device_id}: {payload}")

    def handle_config_request(self, device_id: str, payload: Any) -> bool:
        try:
            self.config_request_schema.load(payload)
        except ValidationError:
            # 서버가 발행한 retained 설정의 에코 등
            logger.debug(f"Non-request message on config topic of {device_id} ignored")
            return False

        logger.info(f"Config request from {device_id}")
        return self.dispatch_config(device_id, reason='request')

    # --- 설정 전송 ---
    def dispatch_config(self, device_id: str, reason: str = 'manual') -> bool:
        """설정을 조립해 발행하고, 성공 시 레지스트리에 전송 기록을 남깁니다."""
        config = self.config_assembler.assemble(device_id)
        if config is None:
            return False

        if not self.mqtt_service.publish_config(device_id, config):
            logger.warning(f"Config dispatch to {device_id} not delivered ({reason})")
            return False

        self.device_service.mark_config_sent(device_id)
        logger.info(f"Config dispatched to {device_id} ({reason})")
        return True

    def schedule_dispatch(self, device_id: str, reason: str = 'scheduled'):
        """고정 지연 후 설정을 전송합니다. 이전 예약은 취소하지 않습니다."""
        self.scheduler(self.dispatch_delay, lambda: self._run_scheduled_dispatch(device_id, reason))

    def _run_scheduled_dispatch(self, device_id: str, reason: str):
        try:
            self.dispatch_config(device_id, reason=reason)
        except Exception:
            logger.exception(f"Scheduled config dispatch to {device_id} failed")

    # --- 외부 트리거 ---
    def notify_safe_zones_changed(self, pet_id: str) -> int:
        """안전 구역 변경 후 반려동물에 연결된 활성 디바이스 모두에 재전송을 예약합니다."""
        devices = self.device_service.find_active_devices_for_pet(pet_id)
        for device in devices:
            self.schedule_dispatch(device.device_id, reason='safe_zone_change')
        if devices:
            logger.info(f"Safe zones changed for pet {pet_id}, config scheduled for {len(devices)} device(s)")
        return len(devices)

    def trigger_auto_config(self, device_id: str):
        self.schedule_dispatch(device_id, reason='auto')
