from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.schemas.common import (
    APIResponse,
    IDResponse,
    MessageResponse,
    created_id,
    message,
    success,
)
from maxit_backend.schemas.group import GroupCreate, GroupDetailed, GroupEdit, GroupPublic, UserIds
from maxit_backend.schemas.task import TaskPublic
from maxit_backend.schemas.user import UserShort
from maxit_backend.services.group import GroupService

router = APIRouter(prefix="/groups", tags=["groups"], dependencies=[Depends(get_current_user)])


@router.post("/", summary="Create a group", status_code=HTTPStatus.CREATED)
def create_group(
    data: GroupCreate, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[IDResponse]:
    return created_id(group_service.create(user, data).id)


@router.get("/", summary="List groups")
def get_groups(
    pagination: Pagination, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[list[GroupPublic]]:
    groups = group_service.get_all(user, pagination)
    return success([GroupPublic.model_validate(group) for group in groups])


@router.get("/{group_id}", summary="Get a group with its members")
def get_group(
    group_id: int, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[GroupDetailed]:
    return success(GroupDetailed.model_validate(group_service.get(user, group_id)))


@router.put("/{group_id}", summary="Edit a group")
def edit_group(
    group_id: int,
    data: GroupEdit,
    user: CurrentUser,
    group_service: Annotated[GroupService, Depends()],
) -> APIResponse[GroupPublic]:
    return success(GroupPublic.model_validate(group_service.edit(user, group_id, data)))


@router.delete("/{group_id}", summary="Delete a group")
def delete_group(
    group_id: int, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[MessageResponse]:
    group_service.delete(user, group_id)
    return message("Group deleted successfully")


@router.get("/{group_id}/users", summary="List group members")
def get_group_users(
    group_id: int, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[list[UserShort]]:
    users = group_service.get_users(user, group_id)
    return success([UserShort.model_validate(member) for member in users])


@router.post("/{group_id}/users", summary="Add members to a group")
def add_group_users(
    group_id: int,
    data: UserIds,
    user: CurrentUser,
    group_service: Annotated[GroupService, Depends()],
) -> APIResponse[MessageResponse]:
    group_service.add_users(user, group_id, data.user_ids)
    return message("Users added to group successfully")


@router.delete("/{group_id}/users", summary="Remove members from a group")
def delete_group_users(
    group_id: int,
    data: UserIds,
    user: CurrentUser,
    group_service: Annotated[GroupService, Depends()],
) -> APIResponse[MessageResponse]:
    group_service.delete_users(user, group_id, data.user_ids)
    return message("Users removed from group successfully")


@router.get("/{group_id}/tasks", summary="List tasks assigned to a group")
def get_group_tasks(
    group_id: int, user: CurrentUser, group_service: Annotated[GroupService, Depends()]
) -> APIResponse[list[TaskPublic]]:
    tasks = group_service.get_tasks(user, group_id)
    return success([TaskPublic.model_validate(task) for task in tasks])
