from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import TeacherOrAdmin
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.models.contest import RegistrationStatus
from maxit_backend.schemas.common import (
    APIResponse,
    IDResponse,
    MessageResponse,
    created_id,
    message,
    success,
)
from maxit_backend.schemas.contest import (
    ContestCreate,
    ContestEdit,
    ContestPublic,
    ContestTaskCreate,
    ContestTaskIds,
    ContestTaskPublic,
    ContestTaskStats,
    RegistrationRequestPublic,
    TaskUserStats,
    UserContestStats,
)
from maxit_backend.schemas.group import GroupIds, GroupPublic
from maxit_backend.schemas.submission import SubmissionPublic
from maxit_backend.schemas.task import TaskPublic
from maxit_backend.services.contest import ContestService
from maxit_backend.services.submission import SubmissionService

router = APIRouter(prefix="/contests-management/contests", tags=["contests-management"])


@router.post("/", summary="Create a contest", status_code=HTTPStatus.CREATED)
def create_contest(
    data: ContestCreate,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[IDResponse]:
    return created_id(contest_service.create(user, data).id)


@router.get("/", summary="List contests the current user has access to")
def get_contests(
    pagination: Pagination,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[ContestPublic]]:
    contests = contest_service.get_all(user, pagination)
    return success([ContestPublic.model_validate(contest) for contest in contests])


@router.get("/created", summary="List contests created by the current user")
def get_created_contests(
    pagination: Pagination,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[ContestPublic]]:
    contests = contest_service.get_created(user, pagination)
    return success([ContestPublic.model_validate(contest) for contest in contests])


@router.get("/managed", summary="List contests the current user can edit")
def get_managed_contests(
    pagination: Pagination,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[ContestPublic]]:
    contests = contest_service.get_managed(user, pagination)
    return success([ContestPublic.model_validate(contest) for contest in contests])


@router.patch("/{contest_id}", summary="Edit a contest")
def edit_contest(
    contest_id: int,
    data: ContestEdit,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[ContestPublic]:
    return success(ContestPublic.model_validate(contest_service.edit(user, contest_id, data)))


@router.delete("/{contest_id}", summary="Delete a contest")
def delete_contest(
    contest_id: int, user: TeacherOrAdmin, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[MessageResponse]:
    contest_service.delete(user, contest_id)
    return message("Contest deleted successfully")


@router.get("/{contest_id}/tasks", summary="List the tasks of a contest")
def get_contest_tasks(
    contest_id: int, user: TeacherOrAdmin, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[list[ContestTaskPublic]]:
    return success(contest_service.get_tasks(user, contest_id))


@router.get("/{contest_id}/tasks/assignable-tasks", summary="List tasks not in the contest yet")
def get_assignable_tasks(
    contest_id: int,
    pagination: Pagination,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[TaskPublic]]:
    tasks = contest_service.get_assignable_tasks(user, contest_id, pagination)
    return success([TaskPublic.model_validate(task) for task in tasks])


@router.post("/{contest_id}/tasks", summary="Add a task to a contest")
def add_contest_task(
    contest_id: int,
    data: ContestTaskCreate,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.add_task(user, contest_id, data)
    return message("Task added to contest successfully")


@router.delete("/{contest_id}/tasks", summary="Remove tasks from a contest")
def remove_contest_tasks(
    contest_id: int,
    data: ContestTaskIds,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.remove_tasks(user, contest_id, data.task_ids)
    return message("Tasks removed from contest successfully")


@router.get("/{contest_id}/task-stats", summary="Per-task statistics of a contest")
def get_contest_task_stats(
    contest_id: int, user: TeacherOrAdmin, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[list[ContestTaskStats]]:
    return success(contest_service.get_task_stats(user, contest_id))


@router.get("/{contest_id}/user-stats", summary="Per-participant statistics of a contest")
def get_contest_user_stats(
    contest_id: int,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
    user_id: int | None = None,
) -> APIResponse[list[UserContestStats]]:
    return success(contest_service.get_user_stats(user, contest_id, user_id))


@router.get(
    "/{contest_id}/tasks/{task_id}/user-stats",
    summary="Per-participant statistics for one contest task",
)
def get_contest_task_user_stats(
    contest_id: int,
    task_id: int,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[TaskUserStats]]:
    return success(contest_service.get_task_user_stats(user, contest_id, task_id))


@router.get(
    "/{contest_id}/tasks/{task_id}/users/{user_id}/submissions",
    summary="List a participant's submissions for one contest task",
)
def get_contest_task_user_submissions(
    contest_id: int,
    task_id: int,
    user_id: int,
    pagination: Pagination,
    user: TeacherOrAdmin,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(
        submission_service.get_all_for_contest_task_user(
            user, contest_id, task_id, user_id, pagination
        )
    )


@router.get("/{contest_id}/registration-requests", summary="List registration requests")
def get_registration_requests(
    contest_id: int,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
    status: RegistrationStatus = RegistrationStatus.PENDING,
) -> APIResponse[list[RegistrationRequestPublic]]:
    requests = contest_service.get_registration_requests(user, contest_id, status)
    return success([RegistrationRequestPublic.model_validate(request) for request in requests])


@router.post(
    "/{contest_id}/registration-requests/{user_id}/approve",
    summary="Approve a pending registration request",
)
def approve_registration_request(
    contest_id: int,
    user_id: int,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.approve_registration(user, contest_id, user_id)
    return message("Registration request approved")


@router.post(
    "/{contest_id}/registration-requests/{user_id}/reject",
    summary="Reject a pending registration request",
)
def reject_registration_request(
    contest_id: int,
    user_id: int,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.reject_registration(user, contest_id, user_id)
    return message("Registration request rejected")


@router.get("/{contest_id}/groups", summary="List the participant groups of a contest")
def get_contest_groups(
    contest_id: int, user: TeacherOrAdmin, contest_service: Annotated[ContestService, Depends()]
) -> APIResponse[list[GroupPublic]]:
    groups = contest_service.get_groups(user, contest_id)
    return success([GroupPublic.model_validate(group) for group in groups])


@router.get("/{contest_id}/groups/assignable", summary="List groups not in the contest yet")
def get_assignable_groups(
    contest_id: int,
    pagination: Pagination,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[list[GroupPublic]]:
    groups = contest_service.get_assignable_groups(user, contest_id, pagination)
    return success([GroupPublic.model_validate(group) for group in groups])


@router.post("/{contest_id}/groups", summary="Add participant groups to a contest")
def add_contest_groups(
    contest_id: int,
    data: GroupIds,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.add_groups(user, contest_id, data.group_ids)
    return message("Groups added to contest successfully")


@router.delete("/{contest_id}/groups", summary="Remove participant groups from a contest")
def remove_contest_groups(
    contest_id: int,
    data: GroupIds,
    user: TeacherOrAdmin,
    contest_service: Annotated[ContestService, Depends()],
) -> APIResponse[MessageResponse]:
    contest_service.remove_groups(user, contest_id, data.group_ids)
    return message("Groups removed from contest successfully")


@router.get("/{contest_id}/submissions", summary="List submissions made in a contest")
def get_contest_submissions(
    contest_id: int,
    pagination: Pagination,
    user: TeacherOrAdmin,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all_for_contest(user, contest_id, pagination))
