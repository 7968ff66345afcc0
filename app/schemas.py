from datetime import datetime
from typing import Generic, Optional, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def _not_blank(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{field} must not be empty")
    return value.strip()


def _valid_email(value: Optional[str]) -> Optional[str]:
    # syntax check only, the address is stored exactly as sent
    if value is None:
        return None
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(str(e))
    return value


class ContactCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    phone: str
    email: Optional[str] = None

    @field_validator("name", "phone")
    @classmethod
    def required_text(cls, value, info):
        return _not_blank(value, info.field_name.capitalize())

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value):
        return _valid_email(value)


class ContactUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    # only runs for fields present in the body
    @field_validator("name", "phone")
    @classmethod
    def present_text(cls, value, info):
        return _not_blank(value, info.field_name.capitalize())

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value):
        return _valid_email(value)


class Contact(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    phone: str
    email: Optional[str] = None
    user_id: int
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    password: str = Field(min_length=6, max_length=72)
    name: str

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value):
        return _valid_email(value)

    @field_validator("name")
    @classmethod
    def required_name(cls, value):
        return _not_blank(value, "Name")


class UserLogin(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value):
        return _valid_email(value)


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    email: str
    name: str


class AuthResponse(User):
    access_token: str


class CurrentUser(BaseModel):
    id: int
    email: str


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None

    @model_serializer(mode="wrap")
    def omit_empty_keys(self, handler):
        # data and message are optional keys, a null inside data is kept
        result = handler(self)
        for key in ("data", "message"):
            if result.get(key) is None:
                result.pop(key, None)
        return result
