from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import sqlalchemy as sa
import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel, as_utc, utcnow
from maxit_backend.models.links import ContestParticipant, ContestParticipantGroup
from maxit_backend.models.utils import UTCDateTime, _timestamp_column, _updated_at_column

if TYPE_CHECKING:
    from maxit_backend.models.group import Group
    from maxit_backend.models.task import Task
    from maxit_backend.models.user import UserORM


class ContestStatus(StrEnum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    PAST = "past"


class RegistrationStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Contest(CustomSQLModel, table=True):
    __tablename__ = "contest"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    description: str = Field(default="")
    created_by: int = Field(foreign_key="user.id")
    start_at: datetime = Field(sa_column=sa.Column(UTCDateTime(), nullable=False))
    end_at: datetime | None = Field(default=None, sa_column=sa.Column(UTCDateTime(), nullable=True))
    is_registration_open: bool = Field(default=True)
    is_submission_open: bool = Field(default=False)
    is_visible: bool = Field(default=False)
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    updated_at: datetime = Field(sa_column=_updated_at_column())

    creator: sa_orm.Mapped["UserORM"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "Contest.created_by"}
    )
    contest_tasks: sa_orm.Mapped[list["ContestTask"]] = Relationship(
        back_populates="contest",
        sa_relationship_kwargs={"order_by": "ContestTask.start_at"},
        cascade_delete=True,
    )
    participants: sa_orm.Mapped[list["UserORM"]] = Relationship(link_model=ContestParticipant)
    participant_groups: sa_orm.Mapped[list["Group"]] = Relationship(
        link_model=ContestParticipantGroup
    )
    registration_requests: sa_orm.Mapped[list["ContestRegistrationRequest"]] = Relationship(
        back_populates="contest", cascade_delete=True
    )

    def status_at(self, moment: datetime | None = None) -> ContestStatus:
        moment = as_utc(moment or utcnow())
        if moment < as_utc(self.start_at):
            return ContestStatus.UPCOMING
        if self.end_at is not None and as_utc(self.end_at) < moment:
            return ContestStatus.PAST
        return ContestStatus.ONGOING

    def has_participant(self, user: "UserORM") -> bool:
        if any(participant.id == user.id for participant in self.participants):
            return True
        member_group_ids = {group.id for group in user.groups}
        return any(group.id in member_group_ids for group in self.participant_groups)


class ContestTask(CustomSQLModel, table=True):
    __tablename__ = "contest_task"

    contest_id: int = Field(foreign_key="contest.id", primary_key=True, ondelete="CASCADE")
    task_id: int = Field(foreign_key="task.id", primary_key=True, ondelete="CASCADE")
    start_at: datetime = Field(sa_column=sa.Column(UTCDateTime(), nullable=False))
    end_at: datetime | None = Field(default=None, sa_column=sa.Column(UTCDateTime(), nullable=True))
    is_submission_open: bool = Field(default=True)

    contest: sa_orm.Mapped[Contest] = Relationship(back_populates="contest_tasks")
    task: sa_orm.Mapped["Task"] = Relationship(back_populates="contest_tasks")

    def accepts_submissions_at(self, moment: datetime | None = None) -> bool:
        moment = as_utc(moment or utcnow())
        if not self.is_submission_open or moment < as_utc(self.start_at):
            return False
        return self.end_at is None or moment <= as_utc(self.end_at)


class ContestRegistrationRequest(CustomSQLModel, table=True):
    __tablename__ = "contest_registration_request"
    __table_args__ = (sa.UniqueConstraint("contest_id", "user_id"),)

    id: int | None = Field(default=None, primary_key=True)
    contest_id: int = Field(foreign_key="contest.id", ondelete="CASCADE")
    user_id: int = Field(foreign_key="user.id", ondelete="CASCADE")
    status: RegistrationStatus = Field(
        default=RegistrationStatus.PENDING,
        sa_column=sa.Column(sa.Enum(RegistrationStatus), nullable=False),
    )
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    reviewed_at: datetime | None = Field(
        default=None, sa_column=sa.Column(UTCDateTime(), nullable=True)
    )

    contest: sa_orm.Mapped[Contest] = Relationship(back_populates="registration_requests")
    user: sa_orm.Mapped["UserORM"] = Relationship()
