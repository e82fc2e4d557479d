from datetime import datetime

from pydantic import BaseModel

from maxit_backend.models.submission import (
    LanguageType,
    Submission,
    SubmissionResultCode,
    SubmissionStatus,
    TestResultStatus,
)
from maxit_backend.schemas.common import ORMModel
from maxit_backend.schemas.user import UserShort


class LanguageConfigPublic(ORMModel):
    id: int
    type: LanguageType
    version: str
    file_extension: str


class LanguageConfigDetailed(LanguageConfigPublic):
    is_disabled: bool


class TestResultPublic(BaseModel):
    __test__ = False

    order: int
    passed: bool | None
    status: str
    execution_time: float | None
    error_message: str


class SubmissionResultPublic(BaseModel):
    code: str
    message: str
    test_results: list[TestResultPublic]


class SubmissionPublic(BaseModel):
    id: int
    task_id: int
    task_title: str
    contest_id: int | None
    order: int
    status: SubmissionStatus
    status_message: str
    submitted_at: datetime
    checked_at: datetime | None
    language: LanguageConfigPublic
    user: UserShort
    result: SubmissionResultPublic | None

    @classmethod
    def from_orm_submission(cls, submission: Submission) -> "SubmissionPublic":
        result = None
        if submission.result is not None:
            result = SubmissionResultPublic(
                code=SubmissionResultCode(submission.result.code).label,
                message=submission.result.message,
                test_results=[
                    TestResultPublic(
                        order=test_result.order,
                        passed=test_result.passed,
                        status=TestResultStatus(test_result.status_code).label,
                        execution_time=test_result.execution_time,
                        error_message=test_result.error_message,
                    )
                    for test_result in submission.result.test_results
                ],
            )

        return cls(
            id=submission.id,
            task_id=submission.task_id,
            task_title=submission.task.title,
            contest_id=submission.contest_id,
            order=submission.order,
            status=submission.status,
            status_message=submission.status_message,
            submitted_at=submission.submitted_at,
            checked_at=submission.checked_at,
            language=LanguageConfigPublic.model_validate(submission.language),
            user=UserShort.model_validate(submission.user),
            result=result,
        )


class SubmissionShort(BaseModel):
    id: int
    task_id: int
    user_id: int
    passed: bool
    how_many_passed: int

    @classmethod
    def from_orm_submission(cls, submission: Submission) -> "SubmissionShort":
        test_results = submission.result.test_results if submission.result is not None else []
        how_many_passed = sum(1 for test_result in test_results if test_result.passed)
        return cls(
            id=submission.id,
            task_id=submission.task_id,
            user_id=submission.user_id,
            passed=bool(test_results) and how_many_passed == len(test_results),
            how_many_passed=how_many_passed,
        )
