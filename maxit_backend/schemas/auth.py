from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError


def check_fields_match(value: str, info: ValidationInfo, other: str) -> str:
    if other in info.data and value != info.data[other]:
        raise PydanticCustomError(
            "field_must_match",
            "{other} does not match",
            {"other": other},
        )
    return value


class UserLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserRegisterRequest(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    surname: str = Field(min_length=3, max_length=50)
    email: EmailStr
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=8, max_length=50)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def check_password_match(cls, value: str, info: ValidationInfo) -> str:
        return check_fields_match(value, info, "password")


class JWTTokens(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: datetime
    token_type: str = "Bearer"
