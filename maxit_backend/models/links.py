"""
Plain many-to-many link tables. They live in their own module so that the
entity modules can reference them as `link_model` without circular imports.
"""

from sqlmodel import Field

from maxit_backend.lib.common import CustomSQLModel


class GroupMember(CustomSQLModel, table=True):
    __tablename__ = "group_member"

    group_id: int = Field(foreign_key="group.id", primary_key=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="user.id", primary_key=True, ondelete="CASCADE")


class TaskUser(CustomSQLModel, table=True):
    __tablename__ = "task_user"

    task_id: int = Field(foreign_key="task.id", primary_key=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="user.id", primary_key=True, ondelete="CASCADE")


class TaskGroup(CustomSQLModel, table=True):
    __tablename__ = "task_group"

    task_id: int = Field(foreign_key="task.id", primary_key=True, ondelete="CASCADE")
    group_id: int = Field(foreign_key="group.id", primary_key=True, ondelete="CASCADE")


class ContestParticipant(CustomSQLModel, table=True):
    __tablename__ = "contest_participant"

    contest_id: int = Field(foreign_key="contest.id", primary_key=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="user.id", primary_key=True, ondelete="CASCADE")


class ContestParticipantGroup(CustomSQLModel, table=True):
    __tablename__ = "contest_participant_group"

    contest_id: int = Field(foreign_key="contest.id", primary_key=True, ondelete="CASCADE")
    group_id: int = Field(foreign_key="group.id", primary_key=True, ondelete="CASCADE")
