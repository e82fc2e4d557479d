from sqlmodel import Session, col, or_, select

from maxit_backend.dependencies.auth import AUTH_PWD_CONTEXT
from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.user import UserChangePassword, UserEdit
from maxit_backend.services.access_control import USER_SORTABLE


class UserService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session

    def get(self, user_id: int) -> UserORM:
        if (user := self.db_session.get(UserORM, user_id)) is None:
            raise ServiceError(ErrorCode.USER_NOT_FOUND)
        return user

    def get_by_email(self, email: str) -> UserORM | None:
        return self.db_session.exec(select(UserORM).where(UserORM.email == email)).first()

    def get_all(self, pagination: PaginationParams) -> list[UserORM]:
        statement = paginate(select(UserORM), pagination, USER_SORTABLE, "role:asc,id:asc")
        return list(self.db_session.exec(statement).all())

    def get_many(self, user_ids: list[int]) -> list[UserORM]:
        """Fetch users by id, raising USER_NOT_FOUND if any of them is missing."""
        users = self.db_session.exec(select(UserORM).where(col(UserORM.id).in_(user_ids))).all()
        if missing := set(user_ids) - {user.id for user in users}:
            raise ServiceError(ErrorCode.USER_NOT_FOUND, f"Users not found: {sorted(missing)}")
        return list(users)

    def ensure_unique(
        self, email: str | None, username: str | None, exclude_id: int | None = None
    ):
        conditions = []
        if email is not None:
            conditions.append(UserORM.email == email)
        if username is not None:
            conditions.append(UserORM.username == username)
        if not conditions:
            return

        statement = select(UserORM).where(or_(*conditions))
        if exclude_id is not None:
            statement = statement.where(UserORM.id != exclude_id)
        if self.db_session.exec(statement).first() is not None:
            raise ServiceError(ErrorCode.USER_ALREADY_EXISTS)

    def edit(self, current_user: UserORM, user_id: int, edit_data: UserEdit):
        if not (current_user.is_admin or current_user.id == user_id):
            raise ServiceError(ErrorCode.NOT_AUTHORIZED, "You can only edit your own profile")

        user = self.get(user_id)
        changes = edit_data.model_dump(exclude_unset=True, exclude_none=True)
        if "role" in changes and not current_user.is_admin:
            raise ServiceError(ErrorCode.NOT_AUTHORIZED, "Only admins can change roles")

        self.ensure_unique(changes.get("email"), changes.get("username"), exclude_id=user_id)

        for key, value in changes.items():
            setattr(user, key, value)
        self.db_session.add(user)
        self.db_session.commit()

    def change_password(self, current_user: UserORM, user_id: int, data: UserChangePassword):
        if not (current_user.is_admin or current_user.id == user_id):
            raise ServiceError(ErrorCode.NOT_AUTHORIZED, "You can only change your own password")

        user = self.get(user_id)
        if not current_user.is_admin and not (
            data.old_password and AUTH_PWD_CONTEXT.verify(data.old_password, user.password_hash)
        ):
            raise ServiceError(ErrorCode.INVALID_CREDENTIALS, "Old password is incorrect")

        user.password_hash = AUTH_PWD_CONTEXT.hash(data.new_password)
        self.db_session.add(user)
        self.db_session.commit()
