from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.models.contest import ContestStatus
from maxit_backend.schemas.common import APIResponse, MessageResponse, message, success
from maxit_backend.schemas.contest import AvailableContest, ContestPublic, ContestTaskPublic
from maxit_backend.schemas.submission import SubmissionPublic
from maxit_backend.schemas.task import TaskProgress, TaskPublic
from maxit_backend.services.contest import ContestService
from maxit_backend.services.submission import SubmissionService
from maxit_backend.services.task import TaskService

router = APIRouter(prefix="/student", tags=["student"], dependencies=[Depends(get_current_user)])


@router.get("/contests", summary="List contests available to the current user")
def get_available_contests(
    pagination: Pagination,
    user: CurrentUser,
    contest_service: Annotated[ContestService, Depends()],
    status: ContestStatus = ContestStatus.ONGOING,
) -> APIResponse[list[AvailableContest]]:
    return success(contest_service.get_available(user, status, pagination))


@router.get("/contests/{contest_id}", summary="Get a contest")
def get_contest(
    contest_id: int, user: CurrentUser, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[ContestPublic]:
    return success(contest_service.get(user, contest_id))


@router.get("/contests/{contest_id}/tasks", summary="List the tasks of a participated contest")
def get_contest_tasks(
    contest_id: int, user: CurrentUser, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[list[ContestTaskPublic]]:
    return success(contest_service.get_participant_tasks(user, contest_id))


@router.post(
    "/contests/{contest_id}/register",
    summary="Request to join a contest",
    status_code=HTTPStatus.CREATED,
)
def register_for_contest(
    contest_id: int, user: CurrentUser, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[MessageResponse]:
    contest_service.register(user, contest_id)
    return message("Registration request submitted")


@router.get(
    "/contests/{contest_id}/task-progress",
    summary="Summarize the current user's attempts in a contest",
)
def get_task_progress(
    contest_id: int, user: CurrentUser, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[list[TaskProgress]]:
    return success(contest_service.get_task_progress(user, contest_id))


@router.get("/submissions", summary="List the current user's submissions")
def get_own_submissions(
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all_for_user(user, user.id, pagination))


@router.get("/tasks", summary="List tasks assigned to the current user")
def get_assigned_tasks(
    pagination: Pagination, user: CurrentUser, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[list[TaskPublic]]:
    tasks = task_service.get_all_assigned(user, pagination)
    return success([TaskPublic.model_validate(task) for task in tasks])
