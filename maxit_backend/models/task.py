from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel
from maxit_backend.models.links import TaskGroup, TaskUser
from maxit_backend.models.utils import _timestamp_column, _updated_at_column

if TYPE_CHECKING:
    from maxit_backend.models.contest import ContestTask
    from maxit_backend.models.group import Group
    from maxit_backend.models.submission import Submission
    from maxit_backend.models.user import UserORM

# Limits applied to test cases extracted from a freshly uploaded archive
DEFAULT_TIME_LIMIT_MS = 1000
DEFAULT_MEMORY_LIMIT_KB = 10 * 1024


class Task(CustomSQLModel, table=True):
    __tablename__ = "task"

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(unique=True, index=True)
    created_by: int = Field(foreign_key="user.id")
    is_visible: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    updated_at: datetime = Field(sa_column=_updated_at_column())

    creator: sa_orm.Mapped["UserORM"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Task.created_by"}
    )
    test_cases: sa_orm.Mapped[list["TestCase"]] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={"order_by": "TestCase.order"},
        cascade_delete=True,
    )
    assigned_users: sa_orm.Mapped[list["UserORM"]] = Relationship(link_model=TaskUser)
    groups: sa_orm.Mapped[list["Group"]] = Relationship(
        back_populates="tasks", link_model=TaskGroup
    )
    submissions: sa_orm.Mapped[list["Submission"]] = Relationship(
        back_populates="task", cascade_delete=True
    )
    contest_tasks: sa_orm.Mapped[list["ContestTask"]] = Relationship(
        back_populates="task", cascade_delete=True
    )


class TestCase(CustomSQLModel, table=True):
    __tablename__ = "test_case"
    __table_args__ = (sa.UniqueConstraint("task_id", "order"),)
    __test__ = False  # not a pytest class

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", ondelete="CASCADE")
    order: int
    input_key: str
    output_key: str
    time_limit: int = Field(default=DEFAULT_TIME_LIMIT_MS)
    """Milliseconds"""
    memory_limit: int = Field(default=DEFAULT_MEMORY_LIMIT_KB)
    """Kilobytes"""

    task: sa_orm.Mapped[Task] = Relationship(back_populates="test_cases")
