from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.schemas.access_control import (
    AddCollaborator,
    Collaborator,
    ResourcePath,
    UpdateCollaborator,
)
from maxit_backend.schemas.common import APIResponse, MessageResponse, message, success
from maxit_backend.schemas.user import UserPublic
from maxit_backend.services.access_control import AccessControlService

router = APIRouter(
    prefix="/access-control", tags=["access-control"], dependencies=[Depends(get_current_user)]
)


@router.post("/{resource}/{resource_id}/collaborators", summary="Add a collaborator")
def add_collaborator(
    resource: ResourcePath,
    resource_id: int,
    data: AddCollaborator,
    user: CurrentUser,
    access_control: Annotated[AccessControlService, Depends()],
) -> APIResponse[MessageResponse]:
    access_control.add_collaborator(
        user, resource.resource_type, resource_id, data.user_id, data.permission
    )
    return message("Collaborator added successfully")


@router.get("/{resource}/{resource_id}/collaborators", summary="List collaborators")
def get_collaborators(
    resource: ResourcePath,
    resource_id: int,
    user: CurrentUser,
    access_control: Annotated[AccessControlService, Depends()],
) -> APIResponse[list[Collaborator]]:
    return success(access_control.get_collaborators(user, resource.resource_type, resource_id))


@router.put(
    "/{resource}/{resource_id}/collaborators/{user_id}",
    summary="Change a collaborator's permission",
)
def update_collaborator(
    resource: ResourcePath,
    resource_id: int,
    user_id: int,
    data: UpdateCollaborator,
    user: CurrentUser,
    access_control: Annotated[AccessControlService, Depends()],
) -> APIResponse[MessageResponse]:
    access_control.update_collaborator(
        user, resource.resource_type, resource_id, user_id, data.permission
    )
    return message("Collaborator updated successfully")


@router.delete("/{resource}/{resource_id}/collaborators/{user_id}", summary="Remove a collaborator")
def remove_collaborator(
    resource: ResourcePath,
    resource_id: int,
    user_id: int,
    user: CurrentUser,
    access_control: Annotated[AccessControlService, Depends()],
) -> APIResponse[MessageResponse]:
    access_control.remove_collaborator(user, resource.resource_type, resource_id, user_id)
    return message("Collaborator removed successfully")


@router.get(
    "/{resource}/{resource_id}/assignable-users",
    summary="List users that can still be added as collaborators",
)
def get_assignable_users(
    resource: ResourcePath,
    resource_id: int,
    pagination: Pagination,
    user: CurrentUser,
    access_control: Annotated[AccessControlService, Depends()],
) -> APIResponse[list[UserPublic]]:
    users = access_control.get_assignable_users(
        user, resource.resource_type, resource_id, pagination
    )
    return success([UserPublic.model_validate(assignable) for assignable in users])
