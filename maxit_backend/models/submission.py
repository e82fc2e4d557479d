from datetime import datetime
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING

import sqlalchemy as sa
import sqlalchemy.orm as sa_orm
from sqlmodel import Field, Relationship

from maxit_backend.lib.common import CustomSQLModel
from maxit_backend.models.utils import UTCDateTime, _timestamp_column

if TYPE_CHECKING:
    from maxit_backend.models.contest import Contest
    from maxit_backend.models.task import Task, TestCase
    from maxit_backend.models.user import UserORM


class LanguageType(StrEnum):
    C = "c"
    CPP = "cpp"


LANGUAGE_EXTENSIONS: dict[LanguageType, str] = {
    LanguageType.C: ".c",
    LanguageType.CPP: ".cpp",
}


class SubmissionStatus(StrEnum):
    RECEIVED = "received"
    SENT_FOR_EVALUATION = "sent for evaluation"
    EVALUATED = "evaluated"
    LOST = "lost"


class SubmissionResultCode(IntEnum):
    """Codes shared with the worker. `UNKNOWN` and `INVALID` never come over the wire."""

    UNKNOWN = 0
    SUCCESS = 1
    TEST_FAILED = 2
    COMPILATION_ERROR = 3
    INITIALIZATION_ERROR = 4
    INTERNAL_ERROR = 5
    INVALID = 6

    @classmethod
    def from_worker(cls, value: int) -> "SubmissionResultCode":
        if cls.SUCCESS <= value <= cls.INTERNAL_ERROR:
            return cls(value)
        return cls.INVALID

    @property
    def label(self) -> str:
        return self.name.lower()


class TestResultStatus(IntEnum):
    OK = 1
    OUTPUT_DIFFERENCE = 2
    TIME_LIMIT_EXCEEDED = 3
    MEMORY_LIMIT_EXCEEDED = 4
    RUNTIME_ERROR = 5
    NOT_EXECUTED = 6
    INVALID = 7

    __test__ = False

    @classmethod
    def from_worker(cls, value: int) -> "TestResultStatus":
        if cls.OK <= value <= cls.RUNTIME_ERROR:
            return cls(value)
        return cls.INVALID

    @property
    def label(self) -> str:
        return self.name.lower()


class LanguageConfig(CustomSQLModel, table=True):
    __tablename__ = "language_config"
    __table_args__ = (sa.UniqueConstraint("type", "version"),)

    id: int | None = Field(default=None, primary_key=True)
    type: LanguageType = Field(sa_column=sa.Column(sa.Enum(LanguageType), nullable=False))
    version: str
    file_extension: str
    is_disabled: bool = Field(default=False)


class Submission(CustomSQLModel, table=True):
    __tablename__ = "submission"

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", index=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="user.id", index=True)
    contest_id: int | None = Field(default=None, foreign_key="contest.id", ondelete="SET NULL")
    language_id: int = Field(foreign_key="language_config.id")
    order: int
    file_key: str
    status: SubmissionStatus = Field(
        default=SubmissionStatus.RECEIVED,
        sa_column=sa.Column(sa.Enum(SubmissionStatus), nullable=False),
    )
    status_message: str = Field(default="")
    submitted_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))
    checked_at: datetime | None = Field(
        default=None, sa_column=sa.Column(UTCDateTime(), nullable=True)
    )

    task: sa_orm.Mapped["Task"] = Relationship(back_populates="submissions")
    user: sa_orm.Mapped["UserORM"] = Relationship(back_populates="submissions")
    contest: sa_orm.Mapped["Contest"] = Relationship()
    language: sa_orm.Mapped[LanguageConfig] = Relationship()
    result: sa_orm.Mapped["SubmissionResult"] = Relationship(
        back_populates="submission",
        sa_relationship_kwargs={"uselist": False},
        cascade_delete=True,
    )


class SubmissionResult(CustomSQLModel, table=True):
    __tablename__ = "submission_result"

    id: int | None = Field(default=None, primary_key=True)
    submission_id: int = Field(foreign_key="submission.id", unique=True, ondelete="CASCADE")
    code: SubmissionResultCode = Field(
        default=SubmissionResultCode.UNKNOWN, sa_column=sa.Column(sa.Integer, nullable=False)
    )
    message: str = Field(default="")
    created_at: datetime = Field(sa_column=_timestamp_column(nullable=False, default=True))

    submission: sa_orm.Mapped[Submission] = Relationship(back_populates="result")
    test_results: sa_orm.Mapped[list["TestResult"]] = Relationship(
        back_populates="submission_result",
        sa_relationship_kwargs={"order_by": "TestResult.order"},
        cascade_delete=True,
    )


class TestResult(CustomSQLModel, table=True):
    __tablename__ = "test_result"
    __test__ = False

    id: int | None = Field(default=None, primary_key=True)
    submission_result_id: int = Field(foreign_key="submission_result.id", ondelete="CASCADE")
    test_case_id: int | None = Field(default=None, foreign_key="test_case.id", ondelete="SET NULL")
    order: int
    passed: bool | None = Field(default=None)
    status_code: TestResultStatus = Field(
        default=TestResultStatus.NOT_EXECUTED, sa_column=sa.Column(sa.Integer, nullable=False)
    )
    execution_time: float | None = Field(default=None)
    """Seconds"""
    error_message: str = Field(default="")

    submission_result: sa_orm.Mapped[SubmissionResult] = Relationship(
        back_populates="test_results"
    )
    test_case: sa_orm.Mapped["TestCase"] = Relationship()
