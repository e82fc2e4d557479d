import logging
from typing import Annotated

from fastapi import Depends, UploadFile
from pydantic import ValidationError
from sqlmodel import Session, col, func, select

from maxit_backend.constants import MAX_SUBMISSION_FILE_SIZE, MINIO_BUCKET
from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.lib import file as file_storage
from maxit_backend.lib.common import utcnow
from maxit_backend.models.access_control import Permission
from maxit_backend.models.links import GroupMember
from maxit_backend.models.submission import (
    Submission,
    SubmissionResult,
    SubmissionResultCode,
    SubmissionStatus,
    TestResult,
    TestResultStatus,
)
from maxit_backend.models.task import Task
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.submission import SubmissionPublic, SubmissionShort
from maxit_backend.schemas.worker import QueueResponseMessage, TaskResponsePayload
from maxit_backend.services.contest import ContestService
from maxit_backend.services.group import GroupService
from maxit_backend.services.language import LanguageService
from maxit_backend.services.queue import QueueService, get_queue_service
from maxit_backend.services.task import TaskService

logger = logging.getLogger(__name__)

SUBMISSION_SORTABLE = {
    "id": col(Submission.id),
    "order": col(Submission.order),
    "status": col(Submission.status),
    "submitted_at": col(Submission.submitted_at),
    "checked_at": col(Submission.checked_at),
}
DEFAULT_SUBMISSION_SORT = "submitted_at:desc,id:desc"


class SubmissionService:
    def __init__(
        self,
        db_session: DBSession,
        queue_service: Annotated[QueueService, Depends(get_queue_service)],
    ):
        self.db_session: Session = db_session
        self.queue_service = queue_service
        self.task_service = TaskService(db_session)
        self.contest_service = ContestService(db_session)
        self.group_service = GroupService(db_session)
        self.language_service = LanguageService(db_session)

    def _visible_to(self, statement, current_user: UserORM):
        """Restrict a submission query to what `current_user` may see."""
        if current_user.is_admin:
            return statement
        if current_user.is_teacher:
            created_tasks = select(Task.id).where(Task.created_by == current_user.id)
            return statement.where(col(Submission.task_id).in_(created_tasks))
        return statement.where(Submission.user_id == current_user.id)

    def _list(self, statement, pagination: PaginationParams) -> list[SubmissionPublic]:
        statement = paginate(statement, pagination, SUBMISSION_SORTABLE, DEFAULT_SUBMISSION_SORT)
        return [
            SubmissionPublic.from_orm_submission(submission)
            for submission in self.db_session.exec(statement).all()
        ]

    def _next_order(self, user_id: int, task_id: int) -> int:
        latest = self.db_session.exec(
            select(func.max(Submission.order)).where(
                Submission.user_id == user_id, Submission.task_id == task_id
            )
        ).one()
        return (latest or 0) + 1

    def _check_can_submit(self, current_user: UserORM, task: Task, contest_id: int | None):
        if contest_id is not None:
            if current_user.is_student:
                self.contest_service.validate_submission(current_user, contest_id, task.id)
            else:
                self.contest_service.get_contest_task(contest_id, task.id)
            return

        if current_user.is_student:
            if not self.task_service.is_assigned(current_user.id, task.id):
                raise ServiceError(ErrorCode.TASK_NOT_ASSIGNED)
        elif not self.task_service.can_view(current_user, task):
            raise ServiceError(ErrorCode.FORBIDDEN, "You do not have access to this task")

    def submit(
        self,
        current_user: UserORM,
        task_id: int,
        language_id: int,
        solution: UploadFile,
        contest_id: int | None = None,
    ) -> Submission:
        if (task := self.db_session.get(Task, task_id)) is None:
            raise ServiceError(ErrorCode.TASK_NOT_FOUND)
        self._check_can_submit(current_user, task, contest_id)

        language = self.language_service.get_enabled(language_id)
        if file_storage.file_extension(solution.filename) != language.file_extension:
            raise ServiceError(
                ErrorCode.INVALID_LANGUAGE,
                f"Solution file must have the '{language.file_extension}' extension",
            )
        data = file_storage.read_upload(solution, MAX_SUBMISSION_FILE_SIZE)

        order = self._next_order(current_user.id, task_id)
        file_key = file_storage.get_valid_key(
            f"submissions/{task_id}/{current_user.id}", language.file_extension
        )
        file_storage.upload_file(MINIO_BUCKET, file_key, data, "text/plain")

        submission = Submission(
            task_id=task_id,
            user_id=current_user.id,
            contest_id=contest_id,
            language_id=language.id,
            order=order,
            file_key=file_key,
            status_message="Submission received",
        )
        submission.result = SubmissionResult(
            code=SubmissionResultCode.UNKNOWN,
            message="Awaiting processing",
            test_results=[
                TestResult(
                    order=test_case.order,
                    test_case_id=test_case.id,
                    passed=False,
                    status_code=TestResultStatus.NOT_EXECUTED,
                    error_message="Not executed",
                )
                for test_case in task.test_cases
            ],
        )
        self.db_session.add(submission)
        self.db_session.commit()
        self.db_session.refresh(submission)

        # A failed publish leaves the submission in `received` to be retried later
        self.queue_service.publish_submission(self.db_session, submission)

        logger.info(
            f"User {current_user.id} submitted #{order} for task {task_id} "
            f"(submission {submission.id}, {submission.status})"
        )
        return submission

    def get(self, current_user: UserORM, submission_id: int) -> SubmissionPublic:
        if (submission := self.db_session.get(Submission, submission_id)) is None:
            raise ServiceError(ErrorCode.SUBMISSION_NOT_FOUND)
        allowed = (
            current_user.is_admin
            or submission.user_id == current_user.id
            or (current_user.is_teacher and submission.task.created_by == current_user.id)
        )
        if not allowed:
            raise ServiceError(ErrorCode.FORBIDDEN, "You cannot view this submission")
        return SubmissionPublic.from_orm_submission(submission)

    def get_all(self, current_user: UserORM, pagination: PaginationParams):
        return self._list(self._visible_to(select(Submission), current_user), pagination)

    def _user_submissions(self, current_user: UserORM, user_id: int):
        if current_user.is_student and current_user.id != user_id:
            raise ServiceError(ErrorCode.FORBIDDEN, "You can only view your own submissions")
        if self.db_session.get(UserORM, user_id) is None:
            raise ServiceError(ErrorCode.USER_NOT_FOUND)

        statement = self._visible_to(select(Submission), current_user)
        return statement.where(Submission.user_id == user_id)

    def get_all_for_user(self, current_user: UserORM, user_id: int, pagination: PaginationParams):
        return self._list(self._user_submissions(current_user, user_id), pagination)

    def get_all_for_user_short(
        self, current_user: UserORM, user_id: int, pagination: PaginationParams
    ) -> list[SubmissionShort]:
        statement = paginate(
            self._user_submissions(current_user, user_id),
            pagination,
            SUBMISSION_SORTABLE,
            DEFAULT_SUBMISSION_SORT,
        )
        return [
            SubmissionShort.from_orm_submission(submission)
            for submission in self.db_session.exec(statement).all()
        ]

    def get_all_for_group(
        self, current_user: UserORM, group_id: int, pagination: PaginationParams
    ):
        """Submissions of the group's members. Teachers only see groups they created."""
        self.group_service.get_managed(current_user, group_id)
        members = select(GroupMember.user_id).where(GroupMember.group_id == group_id)
        statement = select(Submission).where(col(Submission.user_id).in_(members))
        return self._list(statement, pagination)

    def get_all_for_task(self, current_user: UserORM, task_id: int, pagination: PaginationParams):
        if (task := self.db_session.get(Task, task_id)) is None:
            raise ServiceError(ErrorCode.TASK_NOT_FOUND)
        if current_user.is_teacher and task.created_by != current_user.id:
            raise ServiceError(ErrorCode.FORBIDDEN, "You are not the creator of this task")

        statement = self._visible_to(select(Submission), current_user)
        return self._list(statement.where(Submission.task_id == task_id), pagination)

    def get_all_for_contest(
        self, current_user: UserORM, contest_id: int, pagination: PaginationParams
    ):
        self.contest_service.get_for(current_user, contest_id, Permission.VIEW)
        statement = select(Submission).where(Submission.contest_id == contest_id)
        return self._list(statement, pagination)

    def get_all_for_contest_task_user(
        self,
        current_user: UserORM,
        contest_id: int,
        task_id: int,
        user_id: int,
        pagination: PaginationParams,
    ):
        self.contest_service.get_for(current_user, contest_id, Permission.VIEW)
        self.contest_service.get_contest_task(contest_id, task_id)
        statement = select(Submission).where(
            Submission.contest_id == contest_id,
            Submission.task_id == task_id,
            Submission.user_id == user_id,
        )
        return self._list(statement, pagination)

    def handle_worker_result(self, message: QueueResponseMessage):
        """Store a task evaluation reported by a worker."""
        try:
            submission_id = int(message.message_id)
        except ValueError:
            logger.warning(f"Result for non-submission message id '{message.message_id}'")
            return

        if (submission := self.db_session.get(Submission, submission_id)) is None:
            logger.warning(f"Result for unknown submission {submission_id}")
            return

        result = submission.result
        if result is None:
            result = submission.result = SubmissionResult()

        if not message.ok:
            result.code = SubmissionResultCode.INTERNAL_ERROR
            result.message = str(message.payload.get("message") or "Worker failed to evaluate")
        else:
            try:
                payload = TaskResponsePayload.model_validate(message.payload)
            except ValidationError:
                logger.exception(f"Malformed result payload for submission {submission_id}")
                result.code = SubmissionResultCode.INVALID
                result.message = "Malformed result from worker"
            else:
                self._apply_task_response(result, payload)

        submission.status = SubmissionStatus.EVALUATED
        submission.status_message = "Evaluated"
        submission.checked_at = utcnow()
        self.db_session.add(submission)
        self.db_session.commit()
        logger.info(
            f"Submission {submission_id} evaluated: {SubmissionResultCode(result.code).label}"
        )

    @staticmethod
    def _apply_task_response(result: SubmissionResult, payload: TaskResponsePayload):
        result.code = SubmissionResultCode.from_worker(payload.code)
        result.message = payload.message

        by_order = {test_result.order: test_result for test_result in result.test_results}
        for reported in payload.test_results:
            test_result = by_order.get(reported.order)
            if test_result is None:
                test_result = TestResult(order=reported.order)
                result.test_results.append(test_result)
            test_result.passed = reported.passed
            test_result.status_code = TestResultStatus.from_worker(reported.status_code)
            test_result.execution_time = reported.execution_time
            test_result.error_message = reported.error_message
