from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator

from maxit_backend.models.user import UserRole
from maxit_backend.schemas.auth import check_fields_match
from maxit_backend.schemas.common import ORMModel


class UserPublic(ORMModel):
    id: int
    name: str
    surname: str
    email: str
    username: str
    role: UserRole
    created_at: datetime | None = None


class UserShort(ORMModel):
    id: int
    username: str
    name: str
    surname: str


class UserEdit(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=50)
    surname: str | None = Field(default=None, min_length=3, max_length=50)
    email: EmailStr | None = None
    username: str | None = Field(default=None, min_length=3, max_length=30)
    role: UserRole | None = None


class UserChangePassword(BaseModel):
    old_password: str | None = None
    new_password: str = Field(min_length=8, max_length=50)
    new_password_confirm: str

    @field_validator("new_password_confirm")
    @classmethod
    def check_password_match(cls, value: str, info: ValidationInfo) -> str:
        return check_fields_match(value, info, "new_password")
