from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from maxit_backend.models.contest import ContestStatus, RegistrationStatus
from maxit_backend.schemas.common import ORMModel
from maxit_backend.schemas.group import check_unique_ids
from maxit_backend.schemas.user import UserShort


class ContestPublic(ORMModel):
    id: int
    name: str
    description: str
    created_by: int
    start_at: datetime
    end_at: datetime | None
    is_registration_open: bool
    is_submission_open: bool
    is_visible: bool
    created_at: datetime
    updated_at: datetime


class RegistrationState(StrEnum):
    """What the requesting user can do about registering for a contest"""

    REGISTERED = "registered"
    AWAITING_APPROVAL = "awaiting_approval"
    CAN_REGISTER = "can_register"
    REGISTRATION_CLOSED = "registration_closed"


class AvailableContest(ContestPublic):
    """A contest as listed for a student"""

    status: ContestStatus
    participant_count: int
    task_count: int
    registration_status: RegistrationState


class ContestCreate(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(default="", max_length=10_000)
    start_at: datetime
    end_at: datetime | None = None
    is_registration_open: bool = True
    is_submission_open: bool = False
    is_visible: bool = False


class ContestEdit(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=10_000)
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_registration_open: bool | None = None
    is_submission_open: bool | None = None
    is_visible: bool | None = None


class ContestTaskCreate(BaseModel):
    task_id: int = Field(ge=1)
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_submission_open: bool = True


class ContestTaskPublic(ORMModel):
    task_id: int
    title: str
    start_at: datetime
    end_at: datetime | None
    is_submission_open: bool


class RegistrationRequestPublic(ORMModel):
    id: int
    contest_id: int
    status: RegistrationStatus
    created_at: datetime
    reviewed_at: datetime | None
    user: UserShort


class ContestTaskIds(BaseModel):
    task_ids: list[int] = Field(min_length=1)

    @field_validator("task_ids")
    @classmethod
    def check_task_ids(cls, value: list[int]) -> list[int]:
        return check_unique_ids(value)


class ContestTaskStats(BaseModel):
    """How participants are doing on one task of a contest"""

    task_id: int
    title: str
    submission_count: int
    attempted_users: int
    solved_users: int


class UserContestStats(BaseModel):
    user: UserShort
    total_submissions: int
    attempted_tasks: int
    solved_tasks: int
    task_count: int


class TaskUserStats(BaseModel):
    user: UserShort
    attempts: int
    best_result: str | None
    best_passed_tests: int
    test_case_count: int
    last_submitted_at: datetime | None
