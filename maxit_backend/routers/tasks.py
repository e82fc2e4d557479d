from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.schemas.common import APIResponse, success
from maxit_backend.schemas.task import TaskDetailed, TaskPublic
from maxit_backend.services.task import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(get_current_user)])


@router.get("/", summary="List tasks")
def get_tasks(
    pagination: Pagination, user: CurrentUser, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[list[TaskPublic]]:
    tasks = task_service.get_all(user, pagination)
    return success([TaskPublic.model_validate(task) for task in tasks])


@router.get("/assigned", summary="List tasks assigned to the current user")
def get_assigned_tasks(
    pagination: Pagination, user: CurrentUser, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[list[TaskPublic]]:
    tasks = task_service.get_all_assigned(user, pagination)
    return success([TaskPublic.model_validate(task) for task in tasks])


@router.get("/{task_id}", summary="Get a task")
def get_task(
    task_id: int, user: CurrentUser, task_service: Annotated[TaskService, Depends()]
) -> APIResponse[TaskDetailed]:
    return success(task_service.get(user, task_id))
