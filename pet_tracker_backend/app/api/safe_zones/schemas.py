# app/api/safe_zones/schemas.py
from marshmallow import Schema, fields, validate, validates_schema, ValidationError

from app.models.pet import DEFAULT_RADIUS_METERS

class CenterSchema(Schema):
    lat = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    lng = fields.Float(required=True, validate=validate.Range(min=-180, max=180))

class CenterUpdateSchema(Schema):
    """center 부분 업데이트 (lat/lng 개별 지정 가능)."""
    lat = fields.Float(validate=validate.Range(min=-90, max=90))
    lng = fields.Float(validate=validate.Range(min=-180, max=180))

class SafeZoneCreateSchema(Schema):
    """
    POST /api/pets/<pet_id>/safe-zones
    radius 는 범위를 벗어나도 거부하지 않고 저장 시 [10, 5000] 으로 보정됩니다.
    """
    name = fields.Str(load_default="Safe Zone", validate=validate.Length(min=1, max=50))
    center = fields.Nested(CenterSchema, required=True)
    radius = fields.Float(load_default=DEFAULT_RADIUS_METERS)
    is_active = fields.Bool(load_default=True)
    is_primary = fields.Bool(load_default=False)
    auto_created = fields.Bool(load_default=False)

class SafeZoneUpdateSchema(Schema):
    """PUT /api/pets/<pet_id>/safe-zones/<zone_id> 부분 업데이트 스키마."""
    name = fields.Str(validate=validate.Length(min=1, max=50))
    center = fields.Nested(CenterUpdateSchema)
    radius = fields.Float()
    is_active = fields.Bool()
    is_primary = fields.Bool()

    @validates_schema
    def validate_not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError("수정할 필드가 하나 이상 필요합니다.")

class SafeZoneResponseSchema(Schema):
    zone_id = fields.Str()
    name = fields.Str()
    center = fields.Nested(CenterSchema)
    radius = fields.Float()
    is_active = fields.Bool()
    is_primary = fields.Bool()
    auto_created = fields.Bool()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
