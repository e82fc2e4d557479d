import logging

from sqlmodel import Session, col, select

from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.group import Group
from maxit_backend.models.task import Task
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.group import GroupCreate, GroupEdit
from maxit_backend.services.user import UserService

logger = logging.getLogger(__name__)

GROUP_SORTABLE = {
    "id": col(Group.id),
    "name": col(Group.name),
    "created_at": col(Group.created_at),
    "updated_at": col(Group.updated_at),
}


def _ensure_staff(user: UserORM):
    if not (user.is_admin or user.is_teacher):
        raise ServiceError(ErrorCode.FORBIDDEN, "Only teachers and admins can manage groups")


class GroupService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session
        self.user_service = UserService(db_session)

    def _get(self, group_id: int) -> Group:
        if (group := self.db_session.get(Group, group_id)) is None:
            raise ServiceError(ErrorCode.GROUP_NOT_FOUND)
        return group

    def get_managed(self, current_user: UserORM, group_id: int) -> Group:
        """The group, if `current_user` may manage it: admins always, teachers only their own."""
        _ensure_staff(current_user)
        group = self._get(group_id)
        if current_user.is_teacher and group.created_by != current_user.id:
            raise ServiceError(ErrorCode.NOT_AUTHORIZED, "You are not the creator of this group")
        return group

    def get_many(self, group_ids: list[int]) -> list[Group]:
        groups = self.db_session.exec(select(Group).where(col(Group.id).in_(group_ids))).all()
        if missing := set(group_ids) - {group.id for group in groups}:
            raise ServiceError(ErrorCode.GROUP_NOT_FOUND, f"Groups not found: {sorted(missing)}")
        return list(groups)

    def create(self, current_user: UserORM, data: GroupCreate) -> Group:
        _ensure_staff(current_user)
        group = Group(name=data.name, created_by=current_user.id)
        if data.user_ids:
            group.users = self.user_service.get_many(data.user_ids)

        self.db_session.add(group)
        self.db_session.commit()
        self.db_session.refresh(group)
        logger.info(f"User {current_user.id} created group {group.id}")
        return group

    def get(self, current_user: UserORM, group_id: int) -> Group:
        return self.get_managed(current_user, group_id)

    def get_all(self, current_user: UserORM, pagination: PaginationParams) -> list[Group]:
        _ensure_staff(current_user)
        statement = select(Group)
        if not current_user.is_admin:
            statement = statement.where(Group.created_by == current_user.id)
        statement = paginate(statement, pagination, GROUP_SORTABLE, "created_at:desc,id:desc")
        return list(self.db_session.exec(statement).all())

    def edit(self, current_user: UserORM, group_id: int, data: GroupEdit) -> Group:
        group = self.get_managed(current_user, group_id)
        group.name = data.name
        self.db_session.add(group)
        self.db_session.commit()
        self.db_session.refresh(group)
        return group

    def delete(self, current_user: UserORM, group_id: int):
        group = self.get_managed(current_user, group_id)
        group.users.clear()
        group.tasks.clear()
        self.db_session.delete(group)
        self.db_session.commit()
        logger.info(f"User {current_user.id} deleted group {group_id}")

    def add_users(self, current_user: UserORM, group_id: int, user_ids: list[int]):
        group = self.get_managed(current_user, group_id)
        users = self.user_service.get_many(user_ids)

        member_ids = {user.id for user in group.users}
        group.users.extend(user for user in users if user.id not in member_ids)
        self.db_session.add(group)
        self.db_session.commit()

    def delete_users(self, current_user: UserORM, group_id: int, user_ids: list[int]):
        group = self.get_managed(current_user, group_id)
        self.user_service.get_many(user_ids)

        to_remove = set(user_ids)
        group.users = [user for user in group.users if user.id not in to_remove]
        self.db_session.add(group)
        self.db_session.commit()

    def get_users(self, current_user: UserORM, group_id: int) -> list[UserORM]:
        return list(self.get_managed(current_user, group_id).users)

    def get_tasks(self, current_user: UserORM, group_id: int) -> list[Task]:
        group = self._get(group_id)
        if current_user.is_student:
            if all(user.id != current_user.id for user in group.users):
                raise ServiceError(ErrorCode.NOT_AUTHORIZED, "You are not a member of this group")
        elif current_user.is_teacher and group.created_by != current_user.id:
            raise ServiceError(ErrorCode.NOT_AUTHORIZED, "You are not the creator of this group")
        return sorted(group.tasks, key=lambda task: task.id)
