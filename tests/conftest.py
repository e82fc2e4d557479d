import io
import os
import zipfile
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from maxit_backend.app import app
from maxit_backend.dependencies.auth import AUTH_PWD_CONTEXT
from maxit_backend.dependencies.common import get_db_session
from maxit_backend.lib import file as file_storage
from maxit_backend.lib.common import utcnow
from maxit_backend.models import metadata
from maxit_backend.models.user import UserORM, UserRole
from maxit_backend.schemas.contest import ContestCreate
from maxit_backend.services.contest import ContestService
from maxit_backend.services.language import LanguageService
from maxit_backend.services.queue import QueueService, get_queue_service
from maxit_backend.services.task import TaskService
from maxit_backend.services.tokens import create_tokens

PASSWORD = "password123"


class FakeObject:
    def __init__(self, object_name: str):
        self.object_name = object_name


class FakeResponse:
    def __init__(self, data: bytes):
        self._data = data

    def read(self) -> bytes:
        return self._data

    def close(self):
        pass

    def release_conn(self):
        pass


class FakeMinio:
    """In-memory stand-in for the parts of `minio.Minio` the app uses."""

    def __init__(self):
        self.buckets: set[str] = set()
        self.objects: dict[tuple[str, str], bytes] = {}

    def bucket_exists(self, bucket_name: str) -> bool:
        return bucket_name in self.buckets

    def make_bucket(self, bucket_name: str):
        self.buckets.add(bucket_name)

    def put_object(self, bucket_name, object_name, data, length, content_type=None):
        self.objects[(bucket_name, object_name)] = data.read(length)

    def get_object(self, bucket_name: str, object_name: str) -> FakeResponse:
        return FakeResponse(self.objects[(bucket_name, object_name)])

    def list_objects(self, bucket_name: str, prefix: str = "", recursive: bool = False):
        return [
            FakeObject(name)
            for bucket, name in list(self.objects)
            if bucket == bucket_name and name.startswith(prefix)
        ]

    def remove_object(self, bucket_name: str, object_name: str):
        self.objects.pop((bucket_name, object_name), None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(name for _, name in self.objects if name.startswith(prefix))


class FakePublisher:
    """Records what would have been published to the worker queue."""

    def __init__(self, is_ready: bool = True):
        self.is_ready = is_ready
        self.published: list[dict] = []
        self.restarts = 0

    def publish(
        self, body: str, content_type: str = "application/json", reply_to=None, message_id=None
    ) -> bool:
        if not self.is_ready:
            return False
        self.published.append(
            {
                "body": body,
                "content_type": content_type,
                "reply_to": reply_to,
                "message_id": message_id,
            }
        )
        return True

    def restart(self):
        self.restarts += 1


def build_archive(test_cases: int = 2, files: dict[str, bytes] | None = None) -> bytes:
    """Zip archive with `test_cases` input/output pairs, or exactly `files` when given."""
    if files is None:
        files = {}
        for order in range(1, test_cases + 1):
            files[f"input/{order}.in"] = f"{order}\n".encode()
            files[f"output/{order}.out"] = f"{order * 2}\n".encode()

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def password_hash() -> str:
    return AUTH_PWD_CONTEXT.hash(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    metadata.create_all(engine)
    yield engine
    metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage(monkeypatch) -> FakeMinio:
    fake = FakeMinio()
    monkeypatch.setattr(file_storage, "get_client", lambda: fake)
    monkeypatch.setattr(
        file_storage, "file_exists", lambda bucket, name: (bucket, name) in fake.objects
    )
    return fake


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def queue_service(publisher) -> QueueService:
    return QueueService(publisher)  # type: ignore[arg-type]


@pytest.fixture
def client(session, storage, queue_service):
    def get_db_session_override():
        try:
            yield session
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db_session] = get_db_session_override
    app.dependency_overrides[get_queue_service] = lambda: queue_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session, password_hash):
    def _make_user(username: str, role: UserRole = UserRole.STUDENT) -> UserORM:
        user = UserORM(
            name=username.capitalize(),
            surname="Tester",
            email=f"{username}@example.com",
            username=username,
            password_hash=password_hash,
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user) -> UserORM:
    return make_user("admin", UserRole.ADMIN)


@pytest.fixture
def teacher(make_user) -> UserORM:
    return make_user("teacher", UserRole.TEACHER)


@pytest.fixture
def other_teacher(make_user) -> UserORM:
    return make_user("otherteacher", UserRole.TEACHER)


@pytest.fixture
def student(make_user) -> UserORM:
    return make_user("student", UserRole.STUDENT)


@pytest.fixture
def other_student(make_user) -> UserORM:
    return make_user("otherstudent", UserRole.STUDENT)


def auth_headers(user: UserORM) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_tokens(user).access_token}"}


@pytest.fixture
def make_task(session, storage):
    def _make_task(owner: UserORM, title: str = "Sum of two", test_cases: int = 2):
        return TaskService(session).create(owner, title, build_archive(test_cases))

    return _make_task


@pytest.fixture
def make_contest(session):
    def _make_contest(owner: UserORM, name: str = "Spring cup", **fields):
        now = utcnow()
        data = {
            "name": name,
            "start_at": now - timedelta(hours=1),
            "end_at": now + timedelta(hours=2),
            "is_visible": True,
            "is_submission_open": True,
            **fields,
        }
        return ContestService(session).create(owner, ContestCreate(**data))

    return _make_contest


@pytest.fixture
def languages(session):
    language_service = LanguageService(session)
    language_service.seed_defaults()
    return {
        (str(language.type), language.version): language
        for language in language_service.get_all_enabled()
    }
