# app/services/mqtt_service.py
"""
MQTT 브로커와의 단일 장기 연결을 소유하는 메시지 채널 어댑터.

- 디바이스별 토픽 패턴(location/status/alert/config)을 QoS 1로 구독합니다.
- 설정 메시지는 retained 로 발행되어, 재접속한 디바이스가 즉시 마지막 설정을 받습니다.
- 연결되지 않은 상태의 발행은 큐잉 없이 거부됩니다 (at-most-once).
- 재연결은 고정 간격으로 무제한 시도합니다.
- 수신 메시지는 네트워크 스레드가 아닌 워커 스레드에서 처리됩니다.
  같은 디바이스의 메시지는 항상 같은 워커로 가므로 도착 순서대로 처리됩니다.
"""

import json
import logging
import threading
import time
import zlib
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Any

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

TOPIC_ROOT = 'pets'
QOS_AT_LEAST_ONCE = 1


class MessageKind(Enum):
    LOCATION = 'location'
    STATUS = 'status'
    ALERT = 'alert'
    CONFIG = 'config'


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    CLOSED = 'closed'
    ERRORED = 'errored'
    RECONNECTING = 'reconnecting'


# disconnected -> connecting -> connected -> (closed | errored) -> reconnecting -> connected | disconnected
_TRANSITIONS = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.ERRORED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.CLOSED, ConnectionState.ERRORED, ConnectionState.DISCONNECTED},
    ConnectionState.CLOSED: {ConnectionState.RECONNECTING, ConnectionState.DISCONNECTED},
    ConnectionState.ERRORED: {ConnectionState.RECONNECTING, ConnectionState.DISCONNECTED},
    ConnectionState.RECONNECTING: {ConnectionState.CONNECTED, ConnectionState.ERRORED, ConnectionState.DISCONNECTED},
}

MessageHandler = Callable[[str, bytes], None]


def device_topic(device_id: str, kind: MessageKind) -> str:
    return f"{TOPIC_ROOT}/{device_id}/{kind.value}"


def subscription_topics() -> List[str]:
    return [f"{TOPIC_ROOT}/+/{kind.value}" for kind in MessageKind]


def parse_topic(topic: str) -> Optional[Tuple[str, MessageKind]]:
    """'pets/<device_id>/<kind>' 형태의 토픽을 (device_id, MessageKind) 로 분해합니다."""
    parts = topic.split('/')
    if len(parts) != 3 or parts[0] != TOPIC_ROOT or not parts[1]:
        return None
    try:
        return parts[1], MessageKind(parts[2])
    except ValueError:
        return None


def is_valid_device_id(device_id: str) -> bool:
    return bool(device_id) and not any(ch in device_id for ch in '/+#')


class MQTTService:
    """브로커 연결 상태 머신과 발행/구독 기능을 제공하는 서비스 객체."""

    def __init__(self,
                 host: str,
                 port: int = 1883,
                 username: str = '',
                 password: str = '',
                 client_id_prefix: str = 'pet_tracker_server',
                 keepalive: int = 60,
                 reconnect_period: int = 5,
                 connect_timeout: float = 30.0,
                 worker_count: int = 4,
                 client_factory: Optional[Callable[[str], Any]] = None):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.client_id_prefix = client_id_prefix
        self.keepalive = keepalive
        self.reconnect_period = reconnect_period
        self.connect_timeout = connect_timeout
        self.worker_count = max(1, worker_count)
        self._client_factory = client_factory or self._create_client

        self.client = None
        self._state = ConnectionState.DISCONNECTED
        self._stopping = False
        self._lock = threading.RLock()
        self._handlers: List[MessageHandler] = []
        self._workers: List[ThreadPoolExecutor] = []

    # --- 연결 상태 ---
    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _set_state(self, new_state: ConnectionState) -> bool:
        with self._lock:
            old_state = self._state
            if new_state is old_state:
                return True
            if new_state not in _TRANSITIONS[old_state]:
                logger.debug(f"Ignoring MQTT state transition {old_state.value} -> {new_state.value}")
                return False
            self._state = new_state
        logger.info(f"MQTT connection state: {old_state.value} -> {new_state.value}")
        return True

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'connected': self.is_connected,
            'broker': f"{self.host}:{self.port}",
        }

    def connection_settings(self) -> Dict[str, Any]:
        """디바이스 설정 페이로드에 포함되는 브로커 접속 정보."""
        return {
            'broker': self.host,
            'port': self.port,
            'username': self.username,
            'password': self.password,
        }

    def add_message_handler(self, handler: MessageHandler):
        self._handlers.append(handler)

    # --- 수명 주기 ---
    def _create_client(self, client_id: str):
        return mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)

    def start(self):
        """브로커 연결을 시작합니다. 네트워크 루프는 백그라운드 스레드에서 동작합니다."""
        with self._lock:
            if self.client is not None:
                logger.warning("MQTT service already started")
                return
            self._stopping = False
            client_id = f"{self.client_id_prefix}_{int(time.time() * 1000)}"
            client = self._client_factory(client_id)
            if self.username:
                client.username_pw_set(self.username, self.password)
            # 지수 백오프 없이 고정 간격 재연결
            client.reconnect_delay_set(min_delay=self.reconnect_period, max_delay=self.reconnect_period)
            client.connect_timeout = self.connect_timeout
            client.on_connect = self._on_connect
            client.on_connect_fail = self._on_connect_fail
            client.on_disconnect = self._on_disconnect
            client.on_message = self._on_message
            self.client = client
            self._workers = [
                ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"mqtt-worker-{i}")
                for i in range(self.worker_count)
            ]
            self._set_state(ConnectionState.CONNECTING)

        logger.info(f"Connecting to MQTT broker {self.host}:{self.port} as {client_id}")
        client.connect_async(self.host, self.port, keepalive=self.keepalive)
        client.loop_start()

    def stop(self):
        with self._lock:
            client = self.client
            if client is None:
                return
            self._stopping = True
            self.client = None
            workers, self._workers = self._workers, []
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            # 이미 넘겨받은 메시지는 끝까지 처리
            for worker in workers:
                worker.shutdown(wait=True)
            self._set_state(ConnectionState.DISCONNECTED)
            logger.info("MQTT service stopped")

    # --- paho 콜백 (네트워크 스레드) ---
    def _on_connect(self, client, userdata, connect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"MQTT connection refused: {reason_code}")
            self._set_state(ConnectionState.ERRORED)
            self._set_state(ConnectionState.RECONNECTING)
            return

        self._set_state(ConnectionState.CONNECTED)
        for topic in subscription_topics():
            result, _ = client.subscribe(topic, qos=QOS_AT_LEAST_ONCE)
            if result == mqtt.MQTT_ERR_SUCCESS:
                logger.info(f"Subscribed to: {topic}")
            else:
                logger.error(f"Failed to subscribe to {topic}: {mqtt.error_string(result)}")

    def _on_connect_fail(self, client, userdata):
        logger.error(f"MQTT connection to {self.host}:{self.port} failed, retrying in {self.reconnect_period}s")
        self._set_state(ConnectionState.ERRORED)
        self._set_state(ConnectionState.RECONNECTING)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if self._stopping:
            self._set_state(ConnectionState.DISCONNECTED)
            return
        if reason_code.is_failure:
            logger.error(f"MQTT connection lost: {reason_code}")
            self._set_state(ConnectionState.ERRORED)
        else:
            logger.warning("MQTT connection closed")
            self._set_state(ConnectionState.CLOSED)
        self._set_state(ConnectionState.RECONNECTING)

    def _on_message(self, client, userdata, message):
        """핸들러 실행을 워커에 넘기고 즉시 반환합니다. 네트워크 스레드는 블로킹되지 않습니다."""
        topic, payload = message.topic, message.payload
        with self._lock:
            workers = self._workers
        if not workers:
            self._dispatch(topic, payload)
            return

        parsed = parse_topic(topic)
        key = parsed[0] if parsed else topic
        worker = workers[zlib.crc32(key.encode('utf-8')) % len(workers)]
        try:
            worker.submit(self._dispatch, topic, payload)
        except RuntimeError:
            logger.warning(f"MQTT workers are shut down, dropping message on {topic}")

    def _dispatch(self, topic: str, payload: bytes):
        for handler in list(self._handlers):
            try:
                handler(topic, payload)
            except Exception:
                # 한 메시지 처리 실패가 워커나 다른 디바이스에 영향을 주지 않도록 격리
                logger.exception(f"Unhandled error while processing MQTT message on {topic}")

    # --- 발행 ---
    def _publish(self, device_id: str, payload: bytes) -> bool:
        if not is_valid_device_id(device_id):
            logger.error(f"Refusing to publish to invalid device id: {device_id!r}")
            return False
        client = self.client
        if client is None or not self.is_connected:
            logger.warning(f"MQTT not connected ({self.state.value}), cannot publish to {device_id}")
            return False

        topic = device_topic(device_id, MessageKind.CONFIG)
        try:
            info = client.publish(topic, payload, qos=QOS_AT_LEAST_ONCE, retain=True)
        except (ValueError, RuntimeError) as e:
            logger.error(f"MQTT publish to {topic} failed: {e}")
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"MQTT publish to {topic} rejected: {mqtt.error_string(info.rc)}")
            return False
        return True

    def publish_config(self, device_id: str, config: Dict[str, Any]) -> bool:
        """설정 페이로드를 JSON 으로 직렬화해 retained 메시지로 발행합니다."""
        published = self._publish(device_id, json.dumps(config, ensure_ascii=False).encode('utf-8'))
        if published:
            logger.info(f"Config sent to {device_id}")
        return published

    def clear_retained_config(self, device_id: str) -> bool:
        """빈 retained 메시지를 발행해 브로커에 저장된 설정을 지웁니다."""
        cleared = self._publish(device_id, b'')
        if cleared:
            logger.info(f"Retained config cleared for {device_id}")
        return cleared
