from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from maxit_backend.constants import MAX_TASK_ARCHIVE_SIZE
from maxit_backend.dependencies.auth import TeacherOrAdmin
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.lib.file import read_upload
from maxit_backend.schemas.common import (
    APIResponse,
    IDResponse,
    MessageResponse,
    created_id,
    message,
    success,
)
from maxit_backend.schemas.group import GroupIds, UserIds
from maxit_backend.schemas.task import TaskLimitsUpdate, TaskPublic, TestCaseLimit
from maxit_backend.services.task import TaskService

router = APIRouter(prefix="/tasks-management/tasks", tags=["tasks-management"])


@router.post("/", summary="Create a task from a test case archive", status_code=HTTPStatus.CREATED)
def create_task(
    title: Annotated[str, Form(min_length=3, max_length=100)],
    archive: Annotated[UploadFile, File()],
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[IDResponse]:
    data = read_upload(archive, MAX_TASK_ARCHIVE_SIZE)
    return created_id(task_service.create(user, title, data).id)


@router.get("/created", summary="List tasks created by the current user")
def get_created_tasks(
    pagination: Pagination, user: TeacherOrAdmin, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[list[TaskPublic]]:
    tasks = task_service.get_all_created(user, pagination)
    return success([TaskPublic.model_validate(task) for task in tasks])


@router.patch("/{task_id}", summary="Edit a task")
def edit_task(
    task_id: int,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
    title: Annotated[str | None, Form(min_length=3, max_length=100)] = None,
    is_visible: Annotated[bool | None, Form()] = None,
    archive: Annotated[UploadFile | None, File()] = None,
) -> APIResponse[TaskPublic]:
    data = read_upload(archive, MAX_TASK_ARCHIVE_SIZE) if archive is not None else None
    task = task_service.edit(user, task_id, title=title, is_visible=is_visible, archive=data)
    return success(TaskPublic.model_validate(task))


@router.delete("/{task_id}", summary="Delete a task")
def delete_task(
    task_id: int, user: TeacherOrAdmin, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[MessageResponse]:
    task_service.delete(user, task_id)
    return message("Task deleted successfully")


@router.post("/{task_id}/assign/users", summary="Assign a task to users")
def assign_task_to_users(
    task_id: int,
    data: UserIds,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[MessageResponse]:
    task_service.assign_to_users(user, task_id, data.user_ids)
    return message("Task assigned successfully")


@router.post("/{task_id}/assign/groups", summary="Assign a task to groups")
def assign_task_to_groups(
    task_id: int,
    data: GroupIds,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[MessageResponse]:
    task_service.assign_to_groups(user, task_id, data.group_ids)
    return message("Task assigned successfully")


@router.post("/{task_id}/unassign/users", summary="Unassign a task from users")
def unassign_task_from_users(
    task_id: int,
    data: UserIds,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[MessageResponse]:
    task_service.unassign_from_users(user, task_id, data.user_ids)
    return message("Task unassigned successfully")


@router.post("/{task_id}/unassign/groups", summary="Unassign a task from groups")
def unassign_task_from_groups(
    task_id: int,
    data: GroupIds,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[MessageResponse]:
    task_service.unassign_from_groups(user, task_id, data.group_ids)
    return message("Task unassigned successfully")


@router.get("/{task_id}/limits", summary="Get per-test-case limits")
def get_task_limits(
    task_id: int, user: TeacherOrAdmin, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[list[TestCaseLimit]]:
    return success(task_service.get_limits(user, task_id))


@router.put("/{task_id}/limits", summary="Update per-test-case limits")
def update_task_limits(
    task_id: int,
    data: TaskLimitsUpdate,
    user: TeacherOrAdmin,
    task_service: Annotated[TaskService, Depends()],
) -> APIResponse[MessageResponse]:
    task_service.update_limits(user, task_id, data)
    return message("Task limits updated successfully")
