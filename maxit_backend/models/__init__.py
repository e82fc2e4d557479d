from maxit_backend.lib.common import CustomSQLModel

from .access_control import AccessControl, Permission, ResourceType
from .contest import (
    Contest,
    ContestRegistrationRequest,
    ContestStatus,
    ContestTask,
    RegistrationStatus,
)
from .group import Group
from .links import ContestParticipant, ContestParticipantGroup, GroupMember, TaskGroup, TaskUser
from .submission import (
    LanguageConfig,
    LanguageType,
    Submission,
    SubmissionResult,
    SubmissionResultCode,
    SubmissionStatus,
    TestResult,
    TestResultStatus,
)
from .task import Task, TestCase
from .user import UserORM, UserRole

# Used by alembic and `maxit init-db`
metadata = CustomSQLModel.metadata

__all__ = [
    "AccessControl",
    "Contest",
    "ContestParticipant",
    "ContestParticipantGroup",
    "ContestRegistrationRequest",
    "ContestStatus",
    "ContestTask",
    "Group",
    "GroupMember",
    "LanguageConfig",
    "LanguageType",
    "Permission",
    "RegistrationStatus",
    "ResourceType",
    "Submission",
    "SubmissionResult",
    "SubmissionResultCode",
    "SubmissionStatus",
    "Task",
    "TaskGroup",
    "TaskUser",
    "TestCase",
    "TestResult",
    "TestResultStatus",
    "UserORM",
    "UserRole",
    "metadata",
]
