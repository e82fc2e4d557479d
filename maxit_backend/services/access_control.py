import logging

from sqlmodel import Session, col, select

from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.access_control import AccessControl, Permission, ResourceType
from maxit_backend.models.contest import Contest
from maxit_backend.models.task import Task
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.access_control import Collaborator

logger = logging.getLogger(__name__)

_RESOURCE_MODELS: dict[ResourceType, type[Contest] | type[Task]] = {
    ResourceType.CONTEST: Contest,
    ResourceType.TASK: Task,
}

_RESOURCE_NOT_FOUND: dict[ResourceType, ErrorCode] = {
    ResourceType.CONTEST: ErrorCode.CONTEST_NOT_FOUND,
    ResourceType.TASK: ErrorCode.TASK_NOT_FOUND,
}

USER_SORTABLE = {
    "id": col(UserORM.id),
    "name": col(UserORM.name),
    "surname": col(UserORM.surname),
    "email": col(UserORM.email),
    "username": col(UserORM.username),
    "role": col(UserORM.role),
}


class AccessControlService:
    """Table-driven permissions over (resource type, resource id, user id).

    Admins pass every check. Everybody else needs an entry whose level is at
    least the required one. The creator's entry is `owner`, and `owner` can
    only be granted through `grant_owner_access`.
    """

    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session

    def ensure_resource_exists(self, resource_type: ResourceType, resource_id: int):
        if self.db_session.get(_RESOURCE_MODELS[resource_type], resource_id) is None:
            raise ServiceError(_RESOURCE_NOT_FOUND[resource_type])

    def get_entry(
        self, resource_type: ResourceType, resource_id: int, user_id: int
    ) -> AccessControl | None:
        return self.db_session.get(AccessControl, (resource_type, resource_id, user_id))

    def get_user_permission(
        self, resource_type: ResourceType, resource_id: int, user_id: int
    ) -> Permission | None:
        entry = self.get_entry(resource_type, resource_id, user_id)
        return entry.permission if entry is not None else None

    def can_user_access(
        self,
        resource_type: ResourceType,
        resource_id: int,
        user: UserORM,
        required: Permission,
    ) -> bool:
        if user.is_admin:
            return True
        permission = self.get_user_permission(resource_type, resource_id, user.id)
        return permission is not None and permission.satisfies(required)

    def check_access(
        self,
        resource_type: ResourceType,
        resource_id: int,
        user: UserORM,
        required: Permission,
    ):
        if not self.can_user_access(resource_type, resource_id, user, required):
            raise ServiceError(
                ErrorCode.FORBIDDEN,
                f"'{required}' permission on this {resource_type} is required",
            )

    def grant_owner_access(self, resource_type: ResourceType, resource_id: int, user_id: int):
        """Called when a resource is created. The caller commits."""
        entry = self.get_entry(resource_type, resource_id, user_id)
        if entry is None:
            entry = AccessControl(
                resource_type=resource_type,
                resource_id=resource_id,
                user_id=user_id,
                permission=Permission.OWNER,
            )
        entry.permission = Permission.OWNER
        self.db_session.add(entry)

    def remove_resource_entries(self, resource_type: ResourceType, resource_id: int):
        """Called when a resource is deleted. The caller commits."""
        entries = self.db_session.exec(
            select(AccessControl).where(
                AccessControl.resource_type == resource_type,
                AccessControl.resource_id == resource_id,
            )
        ).all()
        for entry in entries:
            self.db_session.delete(entry)

    def add_collaborator(
        self,
        current_user: UserORM,
        resource_type: ResourceType,
        resource_id: int,
        user_id: int,
        permission: Permission,
    ):
        if permission == Permission.OWNER:
            raise ServiceError(ErrorCode.CANNOT_ASSIGN_OWNER)

        self.ensure_resource_exists(resource_type, resource_id)
        self.check_access(resource_type, resource_id, current_user, Permission.MANAGE)

        if self.db_session.get(UserORM, user_id) is None:
            raise ServiceError(ErrorCode.USER_NOT_FOUND)
        if self.get_entry(resource_type, resource_id, user_id) is not None:
            raise ServiceError(ErrorCode.ACCESS_ALREADY_EXISTS)

        self.db_session.add(
            AccessControl(
                resource_type=resource_type,
                resource_id=resource_id,
                user_id=user_id,
                permission=permission,
            )
        )
        self.db_session.commit()
        logger.info(
            f"User {current_user.id} granted '{permission}' on {resource_type} {resource_id} "
            f"to user {user_id}"
        )

    def get_collaborators(
        self, current_user: UserORM, resource_type: ResourceType, resource_id: int
    ) -> list[Collaborator]:
        self.ensure_resource_exists(resource_type, resource_id)
        self.check_access(resource_type, resource_id, current_user, Permission.VIEW)

        rows = self.db_session.exec(
            select(AccessControl, UserORM)
            .join(UserORM, col(UserORM.id) == col(AccessControl.user_id))
            .where(
                AccessControl.resource_type == resource_type,
                AccessControl.resource_id == resource_id,
            )
            .order_by(col(AccessControl.created_at), col(AccessControl.user_id))
        ).all()

        return [
            Collaborator(
                user_id=user.id,
                user_name=user.username,
                first_name=user.name,
                last_name=user.surname,
                user_email=user.email,
                permission=entry.permission,
                added_at=entry.created_at,
            )
            for entry, user in rows
        ]

    def update_collaborator(
        self,
        current_user: UserORM,
        resource_type: ResourceType,
        resource_id: int,
        user_id: int,
        permission: Permission,
    ):
        if permission == Permission.OWNER:
            raise ServiceError(ErrorCode.CANNOT_ASSIGN_OWNER)

        self.ensure_resource_exists(resource_type, resource_id)
        self.check_access(resource_type, resource_id, current_user, Permission.MANAGE)

        if (entry := self.get_entry(resource_type, resource_id, user_id)) is None:
            raise ServiceError(ErrorCode.NOT_FOUND, "Collaborator not found")
        if entry.permission == Permission.OWNER:
            raise ServiceError(ErrorCode.FORBIDDEN, "The owner's permission cannot be changed")

        entry.permission = permission
        self.db_session.add(entry)
        self.db_session.commit()

    def remove_collaborator(
        self,
        current_user: UserORM,
        resource_type: ResourceType,
        resource_id: int,
        user_id: int,
    ):
        self.ensure_resource_exists(resource_type, resource_id)
        self.check_access(resource_type, resource_id, current_user, Permission.MANAGE)

        if (entry := self.get_entry(resource_type, resource_id, user_id)) is None:
            raise ServiceError(ErrorCode.NOT_FOUND, "Collaborator not found")
        if entry.permission == Permission.OWNER:
            raise ServiceError(ErrorCode.FORBIDDEN, "The owner cannot be removed")

        self.db_session.delete(entry)
        self.db_session.commit()

    def get_assignable_users(
        self,
        current_user: UserORM,
        resource_type: ResourceType,
        resource_id: int,
        pagination: PaginationParams,
    ) -> list[UserORM]:
        """Users that hold no access entry on the resource yet."""
        self.ensure_resource_exists(resource_type, resource_id)
        self.check_access(resource_type, resource_id, current_user, Permission.MANAGE)

        with_access = select(AccessControl.user_id).where(
            AccessControl.resource_type == resource_type,
            AccessControl.resource_id == resource_id,
        )
        statement = select(UserORM).where(col(UserORM.id).not_in(with_access))
        statement = paginate(statement, pagination, USER_SORTABLE, "id:asc")
        return list(self.db_session.exec(statement).all())
