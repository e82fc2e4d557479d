import logging
from datetime import datetime

from sqlmodel import Session, and_, col, or_, select

from maxit_backend.dependencies.common import DBSession
from maxit_backend.dependencies.pagination import PaginationParams, paginate
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.lib.common import as_utc, create_multi_index, utcnow
from maxit_backend.models.access_control import AccessControl, Permission, ResourceType
from maxit_backend.models.contest import (
    Contest,
    ContestRegistrationRequest,
    ContestStatus,
    ContestTask,
    RegistrationStatus,
)
from maxit_backend.models.group import Group
from maxit_backend.models.submission import Submission, SubmissionResultCode, TestResultStatus
from maxit_backend.models.task import Task
from maxit_backend.models.user import UserORM
from maxit_backend.schemas.contest import (
    AvailableContest,
    ContestCreate,
    ContestEdit,
    ContestPublic,
    ContestTaskCreate,
    ContestTaskPublic,
    ContestTaskStats,
    RegistrationState,
    TaskUserStats,
    UserContestStats,
)
from maxit_backend.schemas.task import TaskProgress
from maxit_backend.schemas.user import UserShort
from maxit_backend.services.access_control import AccessControlService
from maxit_backend.services.group import GROUP_SORTABLE, GroupService
from maxit_backend.services.task import TASK_SORTABLE, participates_in
from maxit_backend.services.user import UserService

logger = logging.getLogger(__name__)

CONTEST_SORTABLE = {
    "id": col(Contest.id),
    "name": col(Contest.name),
    "start_at": col(Contest.start_at),
    "end_at": col(Contest.end_at),
    "created_at": col(Contest.created_at),
    "updated_at": col(Contest.updated_at),
}
DEFAULT_CONTEST_SORT = "created_at:desc,id:desc"

_EDITOR_PERMISSIONS = [Permission.EDIT, Permission.MANAGE, Permission.OWNER]


def check_schedule(start_at: datetime, end_at: datetime | None):
    if end_at is not None and as_utc(end_at) <= as_utc(start_at):
        raise ServiceError(ErrorCode.END_BEFORE_START)


def is_solved(submission: Submission) -> bool:
    return submission.result is not None and submission.result.code == SubmissionResultCode.SUCCESS


def best_attempt(submissions: list[Submission]) -> tuple[str | None, int]:
    """Result label and passed test count of the evaluated submission that passed the most tests.

    Submissions still waiting for a result, and results the worker sent garbled, do not count.
    """
    best_result, best_passed = None, 0
    for submission in submissions:
        if submission.result is None:
            continue
        result_code = SubmissionResultCode(submission.result.code)
        if result_code in (SubmissionResultCode.UNKNOWN, SubmissionResultCode.INVALID):
            continue
        passed = sum(
            1
            for test_result in submission.result.test_results
            if test_result.status_code == TestResultStatus.OK
        )
        if best_result is None or passed > best_passed:
            best_result, best_passed = result_code.label, passed
    return best_result, best_passed


def status_condition(status: ContestStatus, moment: datetime):
    """SQL counterpart of `Contest.status_at`"""
    match status:
        case ContestStatus.UPCOMING:
            return col(Contest.start_at) > moment
        case ContestStatus.PAST:
            return and_(col(Contest.end_at).is_not(None), col(Contest.end_at) < moment)
        case ContestStatus.ONGOING:
            return and_(
                col(Contest.start_at) <= moment,
                or_(col(Contest.end_at).is_(None), col(Contest.end_at) >= moment),
            )


class ContestService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session
        self.access_control = AccessControlService(db_session)
        self.user_service = UserService(db_session)
        self.group_service = GroupService(db_session)

    def _get(self, contest_id: int) -> Contest:
        if (contest := self.db_session.get(Contest, contest_id)) is None:
            raise ServiceError(ErrorCode.CONTEST_NOT_FOUND)
        return contest

    def get_for(self, current_user: UserORM, contest_id: int, required: Permission) -> Contest:
        contest = self._get(contest_id)
        self.access_control.check_access(ResourceType.CONTEST, contest_id, current_user, required)
        return contest

    def _ensure_unique_name(self, name: str, exclude_id: int | None = None):
        statement = select(Contest.id).where(Contest.name == name)
        if exclude_id is not None:
            statement = statement.where(Contest.id != exclude_id)
        if self.db_session.exec(statement).first() is not None:
            raise ServiceError(ErrorCode.CONTEST_EXISTS)

    def is_participant(self, contest_id: int, user_id: int) -> bool:
        statement = select(Contest.id).where(
            Contest.id == contest_id, participates_in(col(Contest.id), user_id)
        )
        return self.db_session.exec(statement).first() is not None

    def _participants(self, contest: Contest) -> list[UserORM]:
        """Direct participants and members of participant groups, by id"""
        users = {participant.id: participant for participant in contest.participants}
        for group in contest.participant_groups:
            users.update((member.id, member) for member in group.users)
        return [users[user_id] for user_id in sorted(users)]

    def _is_visible_to(self, contest: Contest, user: UserORM) -> bool:
        return contest.is_visible or user.is_admin or contest.created_by == user.id

    # Management

    def create(self, current_user: UserORM, data: ContestCreate) -> Contest:
        check_schedule(data.start_at, data.end_at)
        self._ensure_unique_name(data.name)

        contest = Contest(**data.model_dump(), created_by=current_user.id)
        self.db_session.add(contest)
        self.db_session.flush()

        self.access_control.grant_owner_access(ResourceType.CONTEST, contest.id, current_user.id)
        self.db_session.commit()
        self.db_session.refresh(contest)

        logger.info(f"User {current_user.id} created contest {contest.id} ({contest.name})")
        return contest

    def get_created(self, current_user: UserORM, pagination: PaginationParams) -> list[Contest]:
        statement = select(Contest).where(Contest.created_by == current_user.id)
        statement = paginate(statement, pagination, CONTEST_SORTABLE, DEFAULT_CONTEST_SORT)
        return list(self.db_session.exec(statement).all())

    def get_all(self, current_user: UserORM, pagination: PaginationParams) -> list[Contest]:
        """Every contest for admins, the ones shared with them for teachers."""
        statement = select(Contest)
        if not current_user.is_admin:
            shared = select(AccessControl.resource_id).where(
                AccessControl.resource_type == ResourceType.CONTEST,
                AccessControl.user_id == current_user.id,
            )
            statement = statement.where(col(Contest.id).in_(shared))
        statement = paginate(statement, pagination, CONTEST_SORTABLE, DEFAULT_CONTEST_SORT)
        return list(self.db_session.exec(statement).all())

    def get_managed(self, current_user: UserORM, pagination: PaginationParams) -> list[Contest]:
        """Contests the user may edit. Admins get every contest."""
        statement = select(Contest)
        if not current_user.is_admin:
            editable = select(AccessControl.resource_id).where(
                AccessControl.resource_type == ResourceType.CONTEST,
                AccessControl.user_id == current_user.id,
                col(AccessControl.permission).in_(_EDITOR_PERMISSIONS),
            )
            statement = statement.where(col(Contest.id).in_(editable))
        statement = paginate(statement, pagination, CONTEST_SORTABLE, DEFAULT_CONTEST_SORT)
        return list(self.db_session.exec(statement).all())

    def edit(self, current_user: UserORM, contest_id: int, data: ContestEdit) -> Contest:
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        changes = data.model_dump(exclude_unset=True)

        # end_at may be cleared explicitly, everything else ignores nulls
        changes = {
            key: value for key, value in changes.items() if value is not None or key == "end_at"
        }
        check_schedule(
            changes.get("start_at", contest.start_at), changes.get("end_at", contest.end_at)
        )
        if "name" in changes and changes["name"] != contest.name:
            self._ensure_unique_name(changes["name"], exclude_id=contest_id)

        for key, value in changes.items():
            setattr(contest, key, value)
        self.db_session.add(contest)
        self.db_session.commit()
        self.db_session.refresh(contest)
        return contest

    def delete(self, current_user: UserORM, contest_id: int):
        contest = self.get_for(current_user, contest_id, Permission.MANAGE)

        contest.participants.clear()
        contest.participant_groups.clear()
        self.access_control.remove_resource_entries(ResourceType.CONTEST, contest_id)
        self.db_session.delete(contest)
        self.db_session.commit()
        logger.info(f"User {current_user.id} deleted contest {contest_id}")

    def get_tasks(self, current_user: UserORM, contest_id: int) -> list[ContestTaskPublic]:
        contest = self.get_for(current_user, contest_id, Permission.VIEW)
        return [self._contest_task_public(contest_task) for contest_task in contest.contest_tasks]

    def get_assignable_tasks(
        self, current_user: UserORM, contest_id: int, pagination: PaginationParams
    ) -> list[Task]:
        self.get_for(current_user, contest_id, Permission.EDIT)
        in_contest = select(ContestTask.task_id).where(ContestTask.contest_id == contest_id)
        statement = select(Task).where(col(Task.id).not_in(in_contest))
        statement = paginate(statement, pagination, TASK_SORTABLE, "id:asc")
        return list(self.db_session.exec(statement).all())

    def add_task(self, current_user: UserORM, contest_id: int, data: ContestTaskCreate):
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        if self.db_session.get(Task, data.task_id) is None:
            raise ServiceError(ErrorCode.TASK_NOT_FOUND)
        if self.db_session.get(ContestTask, (contest_id, data.task_id)) is not None:
            raise ServiceError(ErrorCode.TASK_ALREADY_IN_CONTEST)

        # Unset bounds fall back to the contest's own window
        start_at = data.start_at or contest.start_at
        end_at = data.end_at if data.end_at is not None else contest.end_at
        check_schedule(start_at, end_at)

        self.db_session.add(
            ContestTask(
                contest_id=contest_id,
                task_id=data.task_id,
                start_at=start_at,
                end_at=end_at,
                is_submission_open=data.is_submission_open,
            )
        )
        self.db_session.commit()

    def remove_tasks(self, current_user: UserORM, contest_id: int, task_ids: list[int]):
        """Take tasks out of a contest. Submissions made for them stay attached to the contest."""
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        contest_tasks = {
            contest_task.task_id: contest_task for contest_task in contest.contest_tasks
        }
        if missing := set(task_ids) - contest_tasks.keys():
            raise ServiceError(
                ErrorCode.TASK_NOT_IN_CONTEST, f"Tasks not in contest: {sorted(missing)}"
            )

        for task_id in task_ids:
            self.db_session.delete(contest_tasks[task_id])
        self.db_session.commit()
        logger.info(f"User {current_user.id} removed tasks {task_ids} from contest {contest_id}")

    def get_groups(self, current_user: UserORM, contest_id: int) -> list[Group]:
        contest = self.get_for(current_user, contest_id, Permission.VIEW)
        return sorted(contest.participant_groups, key=lambda group: group.id)

    def get_assignable_groups(
        self, current_user: UserORM, contest_id: int, pagination: PaginationParams
    ) -> list[Group]:
        """Groups not participating yet. Teachers only get the groups they created."""
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        present = [group.id for group in contest.participant_groups]
        statement = select(Group).where(col(Group.id).not_in(present))
        if not current_user.is_admin:
            statement = statement.where(Group.created_by == current_user.id)
        statement = paginate(statement, pagination, GROUP_SORTABLE, "name:asc,id:asc")
        return list(self.db_session.exec(statement).all())

    def add_groups(self, current_user: UserORM, contest_id: int, group_ids: list[int]):
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        groups = self.group_service.get_many(group_ids)

        present = {group.id for group in contest.participant_groups}
        contest.participant_groups.extend(group for group in groups if group.id not in present)
        self.db_session.add(contest)
        self.db_session.commit()

    def remove_groups(self, current_user: UserORM, contest_id: int, group_ids: list[int]):
        """Groups that are not participating are skipped, unknown ids are an error."""
        contest = self.get_for(current_user, contest_id, Permission.EDIT)
        removed = {group.id for group in self.group_service.get_many(group_ids)}

        contest.participant_groups = [
            group for group in contest.participant_groups if group.id not in removed
        ]
        self.db_session.add(contest)
        self.db_session.commit()

    # Statistics

    def _contest_submissions(
        self, contest: Contest, task_id: int | None = None, user_id: int | None = None
    ) -> list[Submission]:
        """Submissions made in the contest for tasks that are still part of it"""
        task_ids = [contest_task.task_id for contest_task in contest.contest_tasks]
        statement = select(Submission).where(
            Submission.contest_id == contest.id, col(Submission.task_id).in_(task_ids)
        )
        if task_id is not None:
            statement = statement.where(Submission.task_id == task_id)
        if user_id is not None:
            statement = statement.where(Submission.user_id == user_id)
        return list(self.db_session.exec(statement).all())

    def get_task_stats(self, current_user: UserORM, contest_id: int) -> list[ContestTaskStats]:
        contest = self.get_for(current_user, contest_id, Permission.VIEW)
        by_task = create_multi_index(
            self._contest_submissions(contest), lambda sub: sub.task_id, lambda sub: sub
        )

        stats = []
        for contest_task in contest.contest_tasks:
            submissions = by_task.get(contest_task.task_id, [])
            stats.append(
                ContestTaskStats(
                    task_id=contest_task.task_id,
                    title=contest_task.task.title,
                    submission_count=len(submissions),
                    attempted_users=len({sub.user_id for sub in submissions}),
                    solved_users=len({sub.user_id for sub in submissions if is_solved(sub)}),
                )
            )
        return stats

    def get_user_stats(
        self, current_user: UserORM, contest_id: int, user_id: int | None = None
    ) -> list[UserContestStats]:
        contest = self.get_for(current_user, contest_id, Permission.VIEW)
        participants = self._participants(contest)
        if user_id is not None:
            participants = [user for user in participants if user.id == user_id]
        by_user = create_multi_index(
            self._contest_submissions(contest, user_id=user_id),
            lambda sub: sub.user_id,
            lambda sub: sub,
        )

        return [
            UserContestStats(
                user=UserShort.model_validate(participant),
                total_submissions=len(by_user.get(participant.id, [])),
                attempted_tasks=len({sub.task_id for sub in by_user.get(participant.id, [])}),
                solved_tasks=len(
                    {sub.task_id for sub in by_user.get(participant.id, []) if is_solved(sub)}
                ),
                task_count=len(contest.contest_tasks),
            )
            for participant in participants
        ]

    def get_task_user_stats(
        self, current_user: UserORM, contest_id: int, task_id: int
    ) -> list[TaskUserStats]:
        contest = self.get_for(current_user, contest_id, Permission.VIEW)
        contest_task = self.get_contest_task(contest_id, task_id)
        by_user = create_multi_index(
            self._contest_submissions(contest, task_id=task_id),
            lambda sub: sub.user_id,
            lambda sub: sub,
        )

        stats = []
        for participant in self._participants(contest):
            attempts = by_user.get(participant.id, [])
            best_result, best_passed = best_attempt(attempts)
            stats.append(
                TaskUserStats(
                    user=UserShort.model_validate(participant),
                    attempts=len(attempts),
                    best_result=best_result,
                    best_passed_tests=best_passed,
                    test_case_count=len(contest_task.task.test_cases),
                    last_submitted_at=max((sub.submitted_at for sub in attempts), default=None),
                )
            )
        return stats

    # Registration

    def get_registration_requests(
        self,
        current_user: UserORM,
        contest_id: int,
        status: RegistrationStatus = RegistrationStatus.PENDING,
    ) -> list[ContestRegistrationRequest]:
        self.get_for(current_user, contest_id, Permission.VIEW)
        statement = (
            select(ContestRegistrationRequest)
            .where(
                ContestRegistrationRequest.contest_id == contest_id,
                ContestRegistrationRequest.status == status,
            )
            .order_by(col(ContestRegistrationRequest.created_at), col(ContestRegistrationRequest.id))
        )
        return list(self.db_session.exec(statement).all())

    def _pending_request(self, contest_id: int, user_id: int) -> ContestRegistrationRequest:
        self.user_service.get(user_id)
        request = self.db_session.exec(
            select(ContestRegistrationRequest).where(
                ContestRegistrationRequest.contest_id == contest_id,
                ContestRegistrationRequest.user_id == user_id,
                ContestRegistrationRequest.status == RegistrationStatus.PENDING,
            )
        ).first()
        if request is None:
            raise ServiceError(ErrorCode.NO_PENDING_REGISTRATION)
        return request

    def _review_request(
        self, current_user: UserORM, contest_id: int, user_id: int, status: RegistrationStatus
    ) -> ContestRegistrationRequest:
        contest = self.get_for(current_user, contest_id, Permission.MANAGE)
        request = self._pending_request(contest_id, user_id)

        if self.is_participant(contest_id, user_id):
            # Stale request: the user joined through a group in the meantime
            self.db_session.delete(request)
            self.db_session.commit()
            raise ServiceError(ErrorCode.ALREADY_PARTICIPANT)

        request.status = status
        request.reviewed_at = utcnow()
        self.db_session.add(request)
        if status == RegistrationStatus.APPROVED:
            contest.participants.append(request.user)
            self.db_session.add(contest)
        return request

    def approve_registration(self, current_user: UserORM, contest_id: int, user_id: int):
        self._review_request(current_user, contest_id, user_id, RegistrationStatus.APPROVED)
        self.db_session.commit()
        logger.info(f"User {current_user.id} approved user {user_id} for contest {contest_id}")

    def reject_registration(self, current_user: UserORM, contest_id: int, user_id: int):
        self._review_request(current_user, contest_id, user_id, RegistrationStatus.REJECTED)
        self.db_session.commit()

    def register(self, current_user: UserORM, contest_id: int):
        contest = self._get(contest_id)
        if not self._is_visible_to(contest, current_user):
            raise ServiceError(ErrorCode.NOT_AUTHORIZED)
        if not contest.is_registration_open:
            raise ServiceError(ErrorCode.CONTEST_REGISTRATION_CLOSED)
        if contest.status_at() == ContestStatus.PAST:
            raise ServiceError(ErrorCode.CONTEST_ENDED)
        if self.is_participant(contest_id, current_user.id):
            raise ServiceError(ErrorCode.ALREADY_PARTICIPANT)

        request = self.db_session.exec(
            select(ContestRegistrationRequest).where(
                ContestRegistrationRequest.contest_id == contest_id,
                ContestRegistrationRequest.user_id == current_user.id,
            )
        ).first()
        if request is not None and request.status == RegistrationStatus.PENDING:
            raise ServiceError(ErrorCode.ALREADY_REGISTERED)

        if request is None:
            request = ContestRegistrationRequest(contest_id=contest_id, user_id=current_user.id)
        else:
            # A previously reviewed request is reopened
            request.status = RegistrationStatus.PENDING
            request.created_at = utcnow()
            request.reviewed_at = None
        self.db_session.add(request)
        self.db_session.commit()
        logger.info(f"User {current_user.id} requested to join contest {contest_id}")

    # Student views

    def get(self, current_user: UserORM, contest_id: int) -> ContestPublic:
        contest = self._get(contest_id)
        if not self._is_visible_to(contest, current_user):
            raise ServiceError(ErrorCode.NOT_AUTHORIZED)
        return ContestPublic.model_validate(contest)

    def _registration_state(self, contest: Contest, user: UserORM, moment: datetime):
        if contest.has_participant(user):
            return RegistrationState.REGISTERED
        pending = any(
            request.user_id == user.id and request.status == RegistrationStatus.PENDING
            for request in contest.registration_requests
        )
        if pending:
            return RegistrationState.AWAITING_APPROVAL
        if contest.is_registration_open and contest.status_at(moment) != ContestStatus.PAST:
            return RegistrationState.CAN_REGISTER
        return RegistrationState.REGISTRATION_CLOSED

    def _available_contest(self, contest: Contest, user: UserORM, moment: datetime):
        return AvailableContest(
            **ContestPublic.model_validate(contest).model_dump(),
            status=contest.status_at(moment),
            participant_count=len(self._participants(contest)),
            task_count=len(contest.contest_tasks),
            registration_status=self._registration_state(contest, user, moment),
        )

    def get_available(
        self,
        current_user: UserORM,
        status: ContestStatus,
        pagination: PaginationParams,
    ) -> list[AvailableContest]:
        moment = utcnow()
        statement = select(Contest).where(status_condition(status, moment))
        if not current_user.is_admin:
            statement = statement.where(
                or_(
                    col(Contest.is_visible).is_(True),
                    Contest.created_by == current_user.id,
                    participates_in(col(Contest.id), current_user.id),
                )
            )
        statement = paginate(statement, pagination, CONTEST_SORTABLE, DEFAULT_CONTEST_SORT)
        contests = self.db_session.exec(statement).all()
        return [self._available_contest(contest, current_user, moment) for contest in contests]

    def _get_participated(self, current_user: UserORM, contest_id: int) -> Contest:
        contest = self._get(contest_id)
        if not (
            current_user.is_admin
            or self.access_control.can_user_access(
                ResourceType.CONTEST, contest_id, current_user, Permission.VIEW
            )
            or self.is_participant(contest_id, current_user.id)
        ):
            raise ServiceError(ErrorCode.NOT_CONTEST_PARTICIPANT)
        return contest

    def get_participant_tasks(
        self, current_user: UserORM, contest_id: int
    ) -> list[ContestTaskPublic]:
        contest = self._get_participated(current_user, contest_id)
        return [self._contest_task_public(contest_task) for contest_task in contest.contest_tasks]

    def get_task_progress(self, current_user: UserORM, contest_id: int) -> list[TaskProgress]:
        contest = self._get_participated(current_user, contest_id)
        submissions = self.db_session.exec(
            select(Submission).where(
                Submission.contest_id == contest_id, Submission.user_id == current_user.id
            )
        ).all()
        by_task = create_multi_index(list(submissions), lambda sub: sub.task_id, lambda sub: sub)

        progress = []
        for contest_task in contest.contest_tasks:
            attempts = by_task.get(contest_task.task_id, [])
            best_result, best_passed = best_attempt(attempts)

            progress.append(
                TaskProgress(
                    id=contest_task.task_id,
                    title=contest_task.task.title,
                    start_at=contest_task.start_at,
                    end_at=contest_task.end_at,
                    is_submission_open=contest_task.is_submission_open,
                    attempts=len(attempts),
                    best_result=best_result,
                    best_passed_tests=best_passed,
                    test_case_count=len(contest_task.task.test_cases),
                )
            )
        return progress

    # Submissions

    def get_contest_task(self, contest_id: int, task_id: int) -> ContestTask:
        self._get(contest_id)
        if (contest_task := self.db_session.get(ContestTask, (contest_id, task_id))) is None:
            raise ServiceError(ErrorCode.TASK_NOT_IN_CONTEST)
        return contest_task

    def validate_submission(self, user: UserORM, contest_id: int, task_id: int):
        """Raise unless `user` may submit `task_id` inside `contest_id` right now."""
        contest = self._get(contest_id)
        moment = utcnow()

        if not contest.is_submission_open:
            raise ServiceError(ErrorCode.CONTEST_SUBMISSION_CLOSED)
        match contest.status_at(moment):
            case ContestStatus.UPCOMING:
                raise ServiceError(ErrorCode.CONTEST_NOT_STARTED)
            case ContestStatus.PAST:
                raise ServiceError(ErrorCode.CONTEST_ENDED)
        if not self.is_participant(contest_id, user.id):
            raise ServiceError(ErrorCode.NOT_CONTEST_PARTICIPANT)

        contest_task = self.get_contest_task(contest_id, task_id)
        if not contest_task.accepts_submissions_at(moment):
            raise ServiceError(ErrorCode.TASK_SUBMISSION_CLOSED)

    @staticmethod
    def _contest_task_public(contest_task: ContestTask) -> ContestTaskPublic:
        return ContestTaskPublic(
            task_id=contest_task.task_id,
            title=contest_task.task.title,
            start_at=contest_task.start_at,
            end_at=contest_task.end_at,
            is_submission_open=contest_task.is_submission_open,
        )
