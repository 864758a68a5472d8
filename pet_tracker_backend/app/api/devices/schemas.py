# app/api/devices/schemas.py
from marshmallow import Schema, fields, validate

# 토픽 와일드카드/구분자(/, +, #)를 포함하지 않는 식별자
DEVICE_ID_PATTERN = r'^[A-Za-z0-9_.:-]{3,64}$'

class DeviceRegistrationSchema(Schema):
    """POST /api/devices/ 디바이스를 반려동물에 연결하는 요청 스키마."""
    device_id = fields.Str(required=True, validate=validate.Regexp(
        DEVICE_ID_PATTERN, error="디바이스 ID 형식이 올바르지 않습니다."))
    pet_id = fields.Str(required=True, validate=validate.Length(min=1))
    description = fields.Str(required=False, allow_none=True, validate=validate.Length(max=100))
    firmware_version = fields.Str(required=False, allow_none=True, validate=validate.Length(max=20))

class DeviceResponseSchema(Schema):
    device_id = fields.Str(dump_only=True)
    pet_id = fields.Str(allow_none=True)
    owner_id = fields.Str(allow_none=True)
    is_active = fields.Bool()
    config_sent = fields.Bool()
    last_config_sent = fields.DateTime(allow_none=True)
    last_seen = fields.DateTime(allow_none=True)
    config_acknowledged_at = fields.DateTime(allow_none=True)
    battery_level = fields.Float(allow_none=True)
    signal_strength = fields.Float(allow_none=True)
    firmware_version = fields.Str()
    description = fields.Str()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
