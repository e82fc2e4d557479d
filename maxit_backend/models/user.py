from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import sqlalchemy as sa
import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel
from maxit_backend.models.links import GroupMember
from maxit_backend.models.utils import _timestamp_column

if TYPE_CHECKING:
    from maxit_backend.models.group import Group
    from maxit_backend.models.submission import Submission


class UserRole(StrEnum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class UserORM(CustomSQLModel, table=True):
    __tablename__ = "user"

    id: int | None = Field(default=None, primary_key=True)
    name: str
    surname: str
    email: str = Field(unique=True, index=True)
    username: str = Field(unique=True, index=True)
    password_hash: str
    role: UserRole = Field(
        default=UserRole.STUDENT, sa_column=sa.Column(sa.Enum(UserRole), nullable=False)
    )
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))

    groups: sa_orm.Mapped[list["Group"]] = Relationship(
        back_populates="users", link_model=GroupMember
    )
    submissions: sa_orm.Mapped[list["Submission"]] = Relationship(back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT
