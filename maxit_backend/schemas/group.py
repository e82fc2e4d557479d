from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from maxit_backend.schemas.common import ORMModel
from maxit_backend.schemas.user import UserShort


def check_unique_ids(ids: list[int]) -> list[int]:
    if len(set(ids)) != len(ids):
        raise ValueError("ids must be unique")
    return ids


class GroupPublic(ORMModel):
    id: int
    name: str
    created_by: int
    created_at: datetime
    updated_at: datetime


class GroupDetailed(GroupPublic):
    users: list[UserShort]


class GroupCreate(BaseModel):
    name: str = Field(min_length=3, max_length=50)
    user_ids: list[int] = Field(default_factory=list)

    @field_validator("user_ids")
    @classmethod
    def check_user_ids(cls, value: list[int]) -> list[int]:
        return check_unique_ids(value)


class GroupEdit(BaseModel):
    name: str = Field(min_length=3, max_length=50)


class UserIds(BaseModel):
    user_ids: list[int] = Field(min_length=1)

    @field_validator("user_ids")
    @classmethod
    def check_user_ids(cls, value: list[int]) -> list[int]:
        return check_unique_ids(value)


class GroupIds(BaseModel):
    group_ids: list[int] = Field(min_length=1)

    @field_validator("group_ids")
    @classmethod
    def check_group_ids(cls, value: list[int]) -> list[int]:
        return check_unique_ids(value)
