import logging

from sqlmodel import Session

from maxit_backend.dependencies.auth import AUTH_PWD_CONTEXT
from maxit_backend.dependencies.common import DBSession
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.user import UserORM, UserRole
from maxit_backend.schemas.auth import JWTTokens, UserLoginRequest, UserRegisterRequest
from maxit_backend.services.tokens import TokenType, create_tokens, decode_token
from maxit_backend.services.user import UserService

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session
        self.user_service = UserService(db_session)

    def login(self, data: UserLoginRequest) -> JWTTokens:
        user = self.user_service.get_by_email(data.email)
        if user is None:
            raise ServiceError(ErrorCode.INVALID_CREDENTIALS, "User with this email not found")
        if not AUTH_PWD_CONTEXT.verify(data.password, user.password_hash):
            raise ServiceError(ErrorCode.INVALID_CREDENTIALS)
        return create_tokens(user)

    def register(self, data: UserRegisterRequest) -> JWTTokens:
        self.user_service.ensure_unique(data.email, data.username)

        user = UserORM(
            name=data.name,
            surname=data.surname,
            email=data.email,
            username=data.username,
            password_hash=AUTH_PWD_CONTEXT.hash(data.password),
            role=UserRole.STUDENT,
        )
        self.db_session.add(user)
        self.db_session.commit()
        self.db_session.refresh(user)

        logger.info(f"Registered user {user.id} ({user.username})")
        return create_tokens(user)

    def refresh(self, refresh_token: str | None) -> JWTTokens:
        if not refresh_token:
            raise ServiceError(ErrorCode.NOT_AUTHENTICATED, "No refresh token provided")

        user_id = decode_token(refresh_token, TokenType.REFRESH)
        if (user := self.db_session.get(UserORM, user_id)) is None:
            raise ServiceError(ErrorCode.INVALID_TOKEN, "User for this token no longer exists")
        return create_tokens(user)
