# app/api/pets/schemas.py
from marshmallow import Schema, fields, validate

from app.api.safe_zones.schemas import SafeZoneResponseSchema

class PetRegistrationSchema(Schema):
    """POST /api/pets/ 반려동물 등록 요청 스키마."""
    name = fields.Str(required=True, validate=validate.Length(min=1, max=20))
    species = fields.Str(required=False, allow_none=True, validate=validate.Length(max=30))
    breed = fields.Str(required=False, allow_none=True, validate=validate.Length(max=30))
    age = fields.Int(required=False, allow_none=True, validate=validate.Range(min=0, max=40))

class PetProfileResponseSchema(Schema):
    """소유자 전용 프로필 정보 응답 스키마 (안전 구역 포함)."""
    pet_id = fields.Str(dump_only=True)
    user_id = fields.Str(dump_only=True)
    name = fields.Str()
    species = fields.Str(allow_none=True)
    breed = fields.Str(allow_none=True)
    age = fields.Int(allow_none=True)
    safe_zones = fields.List(fields.Nested(SafeZoneResponseSchema))
    created_at = fields.DateTime(dump_only=True)
