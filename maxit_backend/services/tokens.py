import uuid
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from maxit_backend.constants import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
    SECRET_KEY,
)
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.auth import JWTTokens

AUTH_ALGORITHM = "HS256"


class TokenType(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"


def _encode(user: UserORM, token_type: TokenType, expires_at: datetime) -> str:
    now = datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "username": user.username,
        "role": str(user.role),
        "type": str(token_type),
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": expires_at,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=AUTH_ALGORITHM)


def create_tokens(user: UserORM) -> JWTTokens:
    now = datetime.now(UTC)
    access_expires_at = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    refresh_expires_at = now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return JWTTokens(
        access_token=_encode(user, TokenType.ACCESS, access_expires_at),
        refresh_token=_encode(user, TokenType.REFRESH, refresh_expires_at),
        expires_at=access_expires_at,
    )


def decode_token(token: str, expected_type: TokenType) -> int:
    """Validate `token` and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[AUTH_ALGORITHM])
    except ExpiredSignatureError as expired_err:
        raise ServiceError(ErrorCode.TOKEN_EXPIRED) from expired_err
    except InvalidTokenError as invalid_token_err:
        raise ServiceError(ErrorCode.INVALID_TOKEN) from invalid_token_err

    if payload.get("type") != expected_type:
        raise ServiceError(ErrorCode.INVALID_TOKEN, f"Expected an {expected_type} token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as invalid_sub_err:
        raise ServiceError(ErrorCode.INVALID_TOKEN) from invalid_sub_err
