import logging
import uuid

from sqlmodel import Session, col, or_, select

from maxit_backend.constants import MINIO_BUCKET
from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.lib import file as file_storage
from maxit_backend.lib.archive import parse_task_archive
from maxit_backend.models.access_control import Permission, ResourceType
from maxit_backend.models.contest import ContestTask
from maxit_backend.models.links import (
    ContestParticipant,
    ContestParticipantGroup,
    GroupMember,
    TaskGroup,
    TaskUser,
)
from maxit_backend.models.task import Task, TestCase
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.task import TaskDetailed, TaskLimitsUpdate, TestCaseLimit
from maxit_backend.services.access_control import AccessControlService
from maxit_backend.services.group import GroupService
from maxit_backend.services.user import UserService

logger = logging.getLogger(__name__)

TASK_SORTABLE = {
    "id": col(Task.id),
    "title": col(Task.title),
    "created_at": col(Task.created_at),
    "updated_at": col(Task.updated_at),
}


def task_storage_prefix(task_id: int) -> str:
    return f"tasks/{task_id}"


def assigned_to(user_id: int):
    """Condition on `Task`: assigned to the user directly or through one of their groups."""
    direct = select(TaskUser.task_id).where(TaskUser.user_id == user_id)
    via_group = (
        select(TaskGroup.task_id)
        .join(GroupMember, col(GroupMember.group_id) == col(TaskGroup.group_id))
        .where(GroupMember.user_id == user_id)
    )
    return or_(col(Task.id).in_(direct), col(Task.id).in_(via_group))


def participates_in(contest_id_column, user_id: int):
    """Condition: the contest in `contest_id_column` has the user, directly or via a group."""
    direct = select(ContestParticipant.contest_id).where(ContestParticipant.user_id == user_id)
    via_group = (
        select(ContestParticipantGroup.contest_id)
        .join(GroupMember, col(GroupMember.group_id) == col(ContestParticipantGroup.group_id))
        .where(GroupMember.user_id == user_id)
    )
    return or_(contest_id_column.in_(direct), contest_id_column.in_(via_group))


class TaskService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session
        self.access_control = AccessControlService(db_session)
        self.user_service = UserService(db_session)
        self.group_service = GroupService(db_session)

    def _get(self, task_id: int) -> Task:
        if (task := self.db_session.get(Task, task_id)) is None:
            raise ServiceError(ErrorCode.TASK_NOT_FOUND)
        return task

    def get_for(self, current_user: UserORM, task_id: int, required: Permission) -> Task:
        task = self._get(task_id)
        self.access_control.check_access(ResourceType.TASK, task_id, current_user, required)
        return task

    def is_assigned(self, user_id: int, task_id: int) -> bool:
        statement = select(Task.id).where(
            Task.id == task_id, assigned_to(user_id)
        )
        return self.db_session.exec(statement).first() is not None

    def is_in_participated_contest(self, user: UserORM, task_id: int) -> bool:
        statement = select(ContestTask.task_id).where(
            ContestTask.task_id == task_id,
            participates_in(col(ContestTask.contest_id), user.id),
        )
        return self.db_session.exec(statement).first() is not None

    def can_view(self, current_user: UserORM, task: Task) -> bool:
        if task.is_visible or current_user.is_admin:
            return True
        if self.access_control.can_user_access(
            ResourceType.TASK, task.id, current_user, Permission.VIEW
        ):
            return True
        return self.is_assigned(current_user.id, task.id) or self.is_in_participated_contest(
            current_user, task.id
        )

    def _store_test_cases(self, task: Task, archive: bytes) -> list[str]:
        """Replace the task's test cases with the ones in `archive`.

        New files are uploaded under a fresh prefix, so the current ones stay in place
        until the caller commits. Returns the keys of the replaced files for the caller
        to discard after the commit.
        """
        test_case_files = parse_task_archive(archive)
        prefix = f"{task_storage_prefix(task.id)}/{uuid.uuid4().hex}"
        replaced_keys = [
            key
            for test_case in task.test_cases
            for key in (test_case.input_key, test_case.output_key)
        ]

        test_cases: list[TestCase] = []
        try:
            for files in test_case_files:
                input_key = f"{prefix}/input/{files.order}.in"
                output_key = f"{prefix}/output/{files.order}.out"
                file_storage.upload_file(MINIO_BUCKET, input_key, files.input_data, "text/plain")
                file_storage.upload_file(MINIO_BUCKET, output_key, files.output_data, "text/plain")
                test_cases.append(
                    TestCase(order=files.order, input_key=input_key, output_key=output_key)
                )
        except ServiceError:
            self._discard_files(f"{prefix}/")
            raise

        task.test_cases.clear()
        self.db_session.flush()
        task.test_cases.extend(test_cases)
        return replaced_keys

    def _discard_files(self, prefix: str | None = None, keys: list[str] | None = None):
        """Best-effort cleanup of files no row points to any more."""
        try:
            if prefix is not None:
                file_storage.remove_prefix(MINIO_BUCKET, prefix)
            if keys:
                file_storage.remove_files(MINIO_BUCKET, keys)
        except ServiceError:
            logger.warning(f"Could not remove unused task files (prefix={prefix}, keys={keys})")

    def _ensure_unique_title(self, title: str, exclude_id: int | None = None):
        statement = select(Task.id).where(Task.title == title)
        if exclude_id is not None:
            statement = statement.where(Task.id != exclude_id)
        if self.db_session.exec(statement).first() is not None:
            raise ServiceError(ErrorCode.TASK_EXISTS)

    def create(self, current_user: UserORM, title: str, archive: bytes) -> Task:
        if current_user.is_student:
            raise ServiceError(ErrorCode.FORBIDDEN, "Only teachers and admins can create tasks")
        self._ensure_unique_title(title)
        # Validate before anything is written
        parse_task_archive(archive)

        task = Task(title=title, created_by=current_user.id)
        self.db_session.add(task)
        self.db_session.flush()

        self._store_test_cases(task, archive)
        self.access_control.grant_owner_access(ResourceType.TASK, task.id, current_user.id)
        self.db_session.commit()
        self.db_session.refresh(task)

        logger.info(f"User {current_user.id} created task {task.id} ({task.title})")
        return task

    def get(self, current_user: UserORM, task_id: int) -> TaskDetailed:
        task = self._get(task_id)
        if not self.can_view(current_user, task):
            raise ServiceError(ErrorCode.FORBIDDEN, "You do not have access to this task")

        return TaskDetailed(
            id=task.id,
            title=task.title,
            created_by=task.created_by,
            is_visible=task.is_visible,
            created_at=task.created_at,
            updated_at=task.updated_at,
            created_by_name=f"{task.creator.name} {task.creator.surname}",
            group_ids=sorted(group.id for group in task.groups),
            test_case_count=len(task.test_cases),
        )

    def get_all(self, current_user: UserORM, pagination: PaginationParams) -> list[Task]:
        statement = select(Task)
        if current_user.is_student:
            statement = statement.where(col(Task.is_visible).is_(True))
        statement = paginate(statement, pagination, TASK_SORTABLE, "created_at:desc,id:desc")
        return list(self.db_session.exec(statement).all())

    def get_all_assigned(self, current_user: UserORM, pagination: PaginationParams) -> list[Task]:
        statement = select(Task).where(assigned_to(current_user.id))
        statement = paginate(statement, pagination, TASK_SORTABLE, "created_at:desc,id:desc")
        return list(self.db_session.exec(statement).all())

    def get_all_created(self, current_user: UserORM, pagination: PaginationParams) -> list[Task]:
        statement = select(Task).where(Task.created_by == current_user.id)
        statement = paginate(statement, pagination, TASK_SORTABLE, "created_at:desc,id:desc")
        return list(self.db_session.exec(statement).all())

    def edit(
        self,
        current_user: UserORM,
        task_id: int,
        title: str | None = None,
        is_visible: bool | None = None,
        archive: bytes | None = None,
    ) -> Task:
        task = self.get_for(current_user, task_id, Permission.EDIT)

        if title is not None and title != task.title:
            self._ensure_unique_title(title, exclude_id=task_id)
            task.title = title
        if is_visible is not None:
            task.is_visible = is_visible
        replaced_keys: list[str] = []
        if archive is not None:
            replaced_keys = self._store_test_cases(task, archive)

        self.db_session.add(task)
        self.db_session.commit()
        self.db_session.refresh(task)

        self._discard_files(keys=replaced_keys)
        return task

    def delete(self, current_user: UserORM, task_id: int):
        task = self.get_for(current_user, task_id, Permission.MANAGE)

        task.assigned_users.clear()
        task.groups.clear()
        self.access_control.remove_resource_entries(ResourceType.TASK, task_id)
        self.db_session.delete(task)
        self.db_session.commit()

        file_storage.remove_prefix(MINIO_BUCKET, f"{task_storage_prefix(task_id)}/")
        logger.info(f"User {current_user.id} deleted task {task_id}")

    def assign_to_users(self, current_user: UserORM, task_id: int, user_ids: list[int]):
        task = self.get_for(current_user, task_id, Permission.EDIT)
        users = self.user_service.get_many(user_ids)

        assigned_ids = {user.id for user in task.assigned_users}
        task.assigned_users.extend(user for user in users if user.id not in assigned_ids)
        self.db_session.add(task)
        self.db_session.commit()

    def assign_to_groups(self, current_user: UserORM, task_id: int, group_ids: list[int]):
        task = self.get_for(current_user, task_id, Permission.EDIT)
        groups = self.group_service.get_many(group_ids)

        assigned_ids = {group.id for group in task.groups}
        task.groups.extend(group for group in groups if group.id not in assigned_ids)
        self.db_session.add(task)
        self.db_session.commit()

    def unassign_from_users(self, current_user: UserORM, task_id: int, user_ids: list[int]):
        task = self.get_for(current_user, task_id, Permission.EDIT)
        self.user_service.get_many(user_ids)

        to_remove = set(user_ids)
        task.assigned_users = [user for user in task.assigned_users if user.id not in to_remove]
        self.db_session.add(task)
        self.db_session.commit()

    def unassign_from_groups(self, current_user: UserORM, task_id: int, group_ids: list[int]):
        task = self.get_for(current_user, task_id, Permission.EDIT)
        self.group_service.get_many(group_ids)

        to_remove = set(group_ids)
        task.groups = [group for group in task.groups if group.id not in to_remove]
        self.db_session.add(task)
        self.db_session.commit()

    def get_limits(self, current_user: UserORM, task_id: int) -> list[TestCaseLimit]:
        task = self.get_for(current_user, task_id, Permission.VIEW)
        return [
            TestCaseLimit(
                order=test_case.order,
                time_limit=test_case.time_limit,
                memory_limit=test_case.memory_limit,
            )
            for test_case in task.test_cases
        ]

    def update_limits(self, current_user: UserORM, task_id: int, data: TaskLimitsUpdate):
        task = self.get_for(current_user, task_id, Permission.EDIT)

        test_cases = {test_case.order: test_case for test_case in task.test_cases}
        if unknown := {limit.order for limit in data.limits} - test_cases.keys():
            raise ServiceError(
                ErrorCode.INVALID_DATA, f"Unknown test case orders: {sorted(unknown)}"
            )

        for limit in data.limits:
            test_cases[limit.order].time_limit = limit.time_limit
            test_cases[limit.order].memory_limit = limit.memory_limit
        self.db_session.add(task)
        self.db_session.commit()
