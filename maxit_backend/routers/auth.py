from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Response

from maxit_backend.constants import (
    API_PREFIX,
    REFRESH_TOKEN_COOKIE_SECURE,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from maxit_backend.schemas.auth import JWTTokens, UserLoginRequest, UserRegisterRequest
from maxit_backend.schemas.common import APIResponse, MessageResponse, message, success
from maxit_backend.services.auth import AuthService

REFRESH_TOKEN_COOKIE = "refresh_token"

router = APIRouter(prefix="/auth", tags=["auth"])


def set_refresh_cookie(response: Response, tokens: JWTTokens):
    response.set_cookie(
        key=REFRESH_TOKEN_COOKIE,
        value=tokens.refresh_token,
        max_age=REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path=f"{API_PREFIX}/auth",
        httponly=True,
        secure=REFRESH_TOKEN_COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/login", summary="Log in with email and password")
def login(
    data: UserLoginRequest,
    response: Response,
    auth_service: Annotated[AuthService, Depends()],
) -> APIResponse[JWTTokens]:
    tokens = auth_service.login(data)
    set_refresh_cookie(response, tokens)
    return success(tokens)


@router.post("/register", summary="Register a student account", status_code=HTTPStatus.CREATED)
def register(
    data: UserRegisterRequest,
    response: Response,
    auth_service: Annotated[AuthService, Depends()],
) -> APIResponse[JWTTokens]:
    tokens = auth_service.register(data)
    set_refresh_cookie(response, tokens)
    return success(tokens)


@router.post("/refresh", summary="Exchange the refresh token cookie for new tokens")
def refresh(
    response: Response,
    auth_service: Annotated[AuthService, Depends()],
    refresh_token: Annotated[str | None, Cookie()] = None,
) -> APIResponse[JWTTokens]:
    tokens = auth_service.refresh(refresh_token)
    set_refresh_cookie(response, tokens)
    return success(tokens)


@router.post("/logout", summary="Clear the refresh token cookie")
def logout(response: Response) -> APIResponse[MessageResponse]:
    response.delete_cookie(key=REFRESH_TOKEN_COOKIE, path=f"{API_PREFIX}/auth")
    return message("Logged out successfully")
