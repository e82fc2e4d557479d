from collections.abc import Callable
from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlmodel import Session

from maxit_backend.constants import API_PREFIX
from maxit_backend.dependencies.common import get_db_session
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.user import UserORM, UserRole
from maxit_backend.services.tokens import TokenType, decode_token

AUTH_PWD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False: a missing header is reported through our own error envelope
OAUTH2_SCHEME = OAuth2PasswordBearer(tokenUrl=f"{API_PREFIX}/auth/login", auto_error=False)


def get_current_user(
    token: Annotated[str | None, Depends(OAUTH2_SCHEME)],
    db_session: Annotated[Session, Depends(get_db_session)],
) -> UserORM:
    if not token:
        raise ServiceError(ErrorCode.NOT_AUTHENTICATED, "No authentication token provided")

    user_id = decode_token(token, TokenType.ACCESS)
    if (user := db_session.get(UserORM, user_id)) is None:
        raise ServiceError(ErrorCode.INVALID_TOKEN, "User for this token no longer exists")
    return user


def require_roles(*roles: UserRole) -> Callable[..., UserORM]:
    """Dependency factory: the current user must hold one of `roles`."""

    def _check_role(user: Annotated[UserORM, Depends(get_current_user)]) -> UserORM:
        if user.role not in roles:
            raise ServiceError(ErrorCode.FORBIDDEN, "Insufficient role for this operation")
        return user

    return _check_role


CurrentUser = Annotated[UserORM, Depends(get_current_user)]
TeacherOrAdmin = Annotated[UserORM, Depends(require_roles(UserRole.TEACHER, UserRole.ADMIN))]
Admin = Annotated[UserORM, Depends(require_roles(UserRole.ADMIN))]