from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from maxit_backend.schemas.common import ORMModel


class TaskPublic(ORMModel):
    id: int
    title: str
    created_by: int
    is_visible: bool
    created_at: datetime
    updated_at: datetime


class TaskDetailed(TaskPublic):
    created_by_name: str
    group_ids: list[int]
    test_case_count: int


class TestCaseLimit(BaseModel):
    __test__ = False

    order: int = Field(ge=1)
    time_limit: int = Field(gt=0)
    """Milliseconds"""
    memory_limit: int = Field(gt=0)
    """Kilobytes"""


class TaskLimitsUpdate(BaseModel):
    limits: list[TestCaseLimit] = Field(min_length=1)

    @field_validator("limits")
    @classmethod
    def check_unique_orders(cls, value: list[TestCaseLimit]) -> list[TestCaseLimit]:
        orders = [limit.order for limit in value]
        if len(set(orders)) != len(orders):
            raise ValueError("test case orders must be unique")
        return value


class TaskProgress(BaseModel):
    """A task inside a contest, with the requesting user's attempt summary"""

    id: int
    title: str
    start_at: datetime
    end_at: datetime | None
    is_submission_open: bool
    attempts: int
    best_result: str | None
    best_passed_tests: int
    test_case_count: int
