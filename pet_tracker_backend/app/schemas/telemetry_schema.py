# app/schemas/telemetry_schema.py
"""MQTT 로 수신되는 디바이스 페이로드의 검증 및 정규화 스키마."""
import logging

from marshmallow import Schema, fields, validate, validates_schema, pre_load, post_load, ValidationError, EXCLUDE

from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

BATTERY_MIN = 0
BATTERY_MAX = 100

# 펌웨어 버전에 따라 달라지는 필드명 -> 표준 필드명
FIELD_ALIASES = {
    'battery': 'batteryLevel',
    'rssi': 'signalStrength',
}


def _apply_aliases(data):
    """표준 필드가 없을 때만 별칭 값을 표준 필드로 옮깁니다."""
    if not isinstance(data, dict):
        return data
    normalized = dict(data)
    for alias, canonical in FIELD_ALIASES.items():
        if alias in normalized:
            value = normalized.pop(alias)
            if normalized.get(canonical) is None:
                normalized[canonical] = value
    return normalized


class DeviceTimestamp(fields.Field):
    """ISO 문자열 또는 Unix timestamp(ms) 를 UTC datetime 으로 변환하는 필드."""
    def _deserialize(self, value, attr, data, **kwargs):
        try:
            return DateTimeUtils.validate_datetime_field(value, attr or 'timestamp')
        except ValueError as e:
            raise ValidationError(str(e))


def clamp_battery_level(value):
    """
    배터리 값을 [0, 100] 으로 보정합니다.
    전압 기반 추정치는 100 을 조금 넘는 경우가 있어 메시지 전체를 거부하지 않습니다.
    """
    if value is None:
        return None
    clamped = max(BATTERY_MIN, min(BATTERY_MAX, value))
    if clamped != value:
        logger.warning(f"Battery level {value} out of range, clamped to {clamped}")
    return clamped


class _DevicePayloadSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize_aliases(self, data, **kwargs):
        return _apply_aliases(data)

    @post_load
    def normalize_sensor_ranges(self, data, **kwargs):
        if 'battery_level' in data:
            data['battery_level'] = clamp_battery_level(data['battery_level'])
        return data


class LocationPayloadSchema(_DevicePayloadSchema):
    """pets/<device_id>/location 페이로드."""
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))
    speed = fields.Float(load_default=0.0, allow_none=True, validate=validate.Range(min=0, max=200))
    altitude = fields.Float(load_default=None, allow_none=True)
    accuracy = fields.Float(load_default=None, allow_none=True)
    battery_level = fields.Float(data_key='batteryLevel', load_default=None, allow_none=True)
    signal_strength = fields.Float(data_key='signalStrength', load_default=None, allow_none=True)
    temperature = fields.Float(load_default=None, allow_none=True)
    accel_x = fields.Float(data_key='accelX', load_default=None, allow_none=True)
    accel_y = fields.Float(data_key='accelY', load_default=None, allow_none=True)
    accel_z = fields.Float(data_key='accelZ', load_default=None, allow_none=True)
    gyro_x = fields.Float(data_key='gyroX', load_default=None, allow_none=True)
    gyro_y = fields.Float(data_key='gyroY', load_default=None, allow_none=True)
    gyro_z = fields.Float(data_key='gyroZ', load_default=None, allow_none=True)
    timestamp = DeviceTimestamp(load_default=None, allow_none=True)


class StatusPayloadSchema(_DevicePayloadSchema):
    """
    pets/<device_id>/status 페이로드.
    battery/rssi 별칭이 정규화되어 하나의 표준 상태 레코드가 됩니다.
    """
    battery_level = fields.Float(data_key='batteryLevel', load_default=None, allow_none=True)
    signal_strength = fields.Float(data_key='signalStrength', load_default=None, allow_none=True)
    need_config = fields.Bool(data_key='needConfig', load_default=False)
    config_received = fields.Bool(data_key='configReceived', load_default=None, allow_none=True)
    firmware_version = fields.Str(data_key='firmwareVersion', load_default=None, allow_none=True)


class ConfigRequestSchema(_DevicePayloadSchema):
    """
    pets/<device_id>/config 로 들어오는 설정 요청.
    {type: "config_request"} 또는 {configRequest: true} 만 요청으로 인정합니다.
    """
    CONFIG_REQUEST_TYPE = 'config_request'

    type = fields.Str(load_default=None, allow_none=True)
    config_request = fields.Bool(data_key='configRequest', load_default=False)

    @validates_schema
    def validate_is_request(self, data, **kwargs):
        if data.get('type') != self.CONFIG_REQUEST_TYPE and not data.get('config_request'):
            raise ValidationError('설정 요청 메시지가 아닙니다.')
