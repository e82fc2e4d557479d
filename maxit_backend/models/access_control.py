from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import sqlalchemy as sa
import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel
from maxit_backend.models.utils import _timestamp_column, _updated_at_column

if TYPE_CHECKING:
    from maxit_backend.models.user import UserORM


class ResourceType(StrEnum):
    CONTEST = "contest"
    TASK = "task"


class Permission(StrEnum):
    VIEW = "view"
    EDIT = "edit"
    MANAGE = "manage"
    OWNER = "owner"

    @property
    def level(self) -> int:
        return _PERMISSION_LEVELS[self]

    def satisfies(self, required: "Permission") -> bool:
        return self.level >= required.level


_PERMISSION_LEVELS: dict[Permission, int] = {
    Permission.VIEW: 1,
    Permission.EDIT: 2,
    Permission.MANAGE: 3,
    Permission.OWNER: 4,
}


class AccessControl(CustomSQLModel, table=True):
    """One permission level per (resource, user)."""

    __tablename__ = "access_control"

    resource_type: ResourceType = Field(
        sa_column=sa.Column(sa.Enum(ResourceType), primary_key=True)
    )
    resource_id: int = Field(primary_key=True)
    user_id: int = Field(foreign_key="user.id", primary_key=True, ondelete="CASCADE")
    permission: Permission = Field(sa_column=sa.Column(sa.Enum(Permission), nullable=False))
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    updated_at: datetime = Field(sa_column=_updated_at_column())

    user: sa_orm.Mapped["UserORM"] = Relationship()
