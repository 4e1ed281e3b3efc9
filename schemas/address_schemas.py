from datetime import datetime
from typing import Optional
from pydantic import ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from models.enums import AddressType
from schemas.common import CamelModel
from schemas.auth_schemas import normalize_phone


class CreateAddressRequest(CamelModel):
    type: AddressType
    first_name: str
    last_name: str
    address1: str
    address2: Optional[str] = None
    city: str
    state: str
    zip_code: str
    country: str
    phone: Optional[str] = None

    @field_validator('first_name', 'last_name', 'address1', 'city', 'state', 'zip_code', 'country')
    @classmethod
    def not_blank(cls, value):
        value = value.strip()
        if not value:
            raise ValueError('must not be blank')
        return value

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class AddressResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    type: AddressType
    first_name: str
    last_name: str
    address1: str
    address2: Optional[str] = None
    city: str
    state: str
    zip_code: str
    country: str
    phone: Optional[str] = None
    created_at: datetime
