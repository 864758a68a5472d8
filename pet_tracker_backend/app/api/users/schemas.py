# app/api/users/schemas.py
from marshmallow import Schema, fields, validate

# 국제 형식(+84..., +82...) 또는 국내 형식(0912...) 전화번호
PHONE_PATTERN = r'^\+?[0-9]{8,15}$'

class UserProfileResponseSchema(Schema):
    """GET/PATCH /api/users/me 응답 스키마."""
    user_id = fields.Str(dump_only=True)
    email = fields.Str(allow_none=True)
    name = fields.Str(allow_none=True)
    phone = fields.Str(allow_none=True)
    join_date = fields.DateTime(dump_only=True)

class UserProfileUpdateSchema(Schema):
    """
    PATCH /api/users/me
    phone 은 디바이스 설정의 보호자 연락처(phoneNumber)로 전송됩니다.
    """
    name = fields.Str(validate=validate.Length(min=1, max=50))
    phone = fields.Str(validate=validate.Regexp(PHONE_PATTERN, error="올바른 전화번호 형식이 아닙니다."))
    email = fields.Email()
