from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel
from maxit_backend.models.links import GroupMember, TaskGroup
from maxit_backend.models.utils import _timestamp_column, _updated_at_column

if TYPE_CHECKING:
    from maxit_backend.models.task import Task
    from maxit_backend.models.user import UserORM


class Group(CustomSQLModel, table=True):
    """A class or tutorial group. Tasks and contests can be assigned to a whole group."""

    __tablename__ = "group"

    id: int | None = Field(default=None, primary_key=True)
    name: str
    created_by: int = Field(foreign_key="user.id")
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    updated_at: datetime = Field(sa_column=_updated_at_column())

    creator: sa_orm.Mapped["UserORM"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Group.created_by"}
    )
    users: sa_orm.Mapped[list["UserORM"]] = Relationship(
        back_populates="groups",
        link_model=GroupMember,
        sa_relationship_kwargs={"order_by": "UserORM.id"},
    )
    tasks: sa_orm.Mapped[list["Task"]] = Relationship(
        back_populates="groups", link_model=TaskGroup
    )
