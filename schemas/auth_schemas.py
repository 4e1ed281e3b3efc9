from typing import Optional
from pydantic import EmailStr, field_validator
from schemas.common import CamelModel
from pydantic import BaseModel
import phonenumbers
import re


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """
    Validates a phone number with Google's phonenumbers library and returns
    it in E.164 form. The country code is required: +201234567890
    """
    if value is None:
        return value
    try:
        parsed = phonenumbers.parse(value, None)
    except phonenumbers.NumberParseException:
        raise ValueError('Phone number must include country code (e.g.: +14155550123)')

    if not phonenumbers.is_valid_number(parsed):
        raise ValueError('Invalid phone number')

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


class Token(BaseModel):
    access_token: str
    token_type: str


class CreateUserRequest(CamelModel):
    email: EmailStr
    first_name: str
    last_name: str
    password: str
    phone_number: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        """
        Password must be at least 8 characters and contain:
        - At least one letter
        - At least one digit
        """
        if len(value) < 8:
            raise ValueError('Password must be at least 8 characters')

        if not re.search(r'[A-Za-z]', value):
            raise ValueError('Password must contain at least one letter')

        if not re.search(r'\d', value):
            raise ValueError('Password must contain at least one digit')

        return value

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
