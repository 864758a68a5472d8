# app/api/pet_data/schemas.py
from marshmallow import Schema, fields, validate, validates_schema, ValidationError, EXCLUDE

from app.schemas.telemetry_schema import LocationPayloadSchema

class PetDataQuerySchema(Schema):
    """GET /api/pet-data/pet/<pet_id> 쿼리 파라미터."""
    class Meta:
        unknown = EXCLUDE

    start = fields.DateTime(load_default=None)
    end = fields.DateTime(load_default=None)
    limit = fields.Int(load_default=100, validate=validate.Range(min=1, max=1000))

    @validates_schema
    def validate_range(self, data, **kwargs):
        if data.get('start') and data.get('end') and data['start'] > data['end']:
            raise ValidationError("start 는 end 보다 이전이어야 합니다.", field_name='start')

class PetDataIngestSchema(LocationPayloadSchema):
    """
    POST /api/pet-data MQTT 를 쓰지 않는 디바이스의 HTTP 위치 전송.
    위치 필드는 MQTT location 페이로드와 동일합니다.
    """
    pet_id = fields.Str(data_key='petId', required=True, validate=validate.Length(min=1))
    device_id = fields.Str(data_key='deviceId', required=True, validate=validate.Length(min=1))

class PetDataResponseSchema(Schema):
    sample_id = fields.Str()
    pet_id = fields.Str()
    pet_name = fields.Str(allow_none=True)
    device_id = fields.Str()
    timestamp = fields.Str()
    latitude = fields.Float()
    longitude = fields.Float()
    speed = fields.Float()
    altitude = fields.Float(allow_none=True)
    accuracy = fields.Float(allow_none=True)
    battery_level = fields.Float(allow_none=True)
    signal_strength = fields.Float(allow_none=True)
    temperature = fields.Float(allow_none=True)
    is_moving = fields.Bool()
    activity_type = fields.Str()
