from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.schemas.common import APIResponse, MessageResponse, message, success
from maxit_backend.schemas.user import UserChangePassword, UserEdit, UserPublic
from maxit_backend.services.user import UserService

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_user)])


@router.get("/", summary="List users")
def get_users(
    pagination: Pagination, user_service: Annotated[UserService, Depends()]
) -> APIResponse[list[UserPublic]]:
    return success([UserPublic.model_validate(user) for user in user_service.get_all(pagination)])


@router.get("/me", summary="Get the current user")
def get_me(user: CurrentUser) -> APIResponse[UserPublic]:
    return success(UserPublic.model_validate(user))


@router.get("/{user_id}", summary="Get a user")
def get_user(
    user_id: int, user_service: Annotated[UserService, Depends()]
) -> APIResponse[UserPublic]:
    return success(UserPublic.model_validate(user_service.get(user_id)))


@router.patch("/{user_id}", summary="Edit a user")
def edit_user(
    user_id: int,
    data: UserEdit,
    user: CurrentUser,
    user_service: Annotated[UserService, Depends()],
) -> APIResponse[MessageResponse]:
    user_service.edit(user, user_id, data)
    return message("Update successful")


@router.patch("/{user_id}/password", summary="Change a user's password")
def change_password(
    user_id: int,
    data: UserChangePassword,
    user: CurrentUser,
    user_service: Annotated[UserService, Depends()],
) -> APIResponse[MessageResponse]:
    user_service.change_password(user, user_id, data)
    return message("Password changed successfully")
