from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


class MessageType(StrEnum):
    TASK = "task"
    HANDSHAKE = "handshake"
    STATUS = "status"


class FileLocation(BaseModel):
    bucket: str
    path: str


class QueueTestCase(BaseModel):
    order: int
    input_file: FileLocation
    expected_output: FileLocation
    time_limit_ms: int
    memory_limit_kb: int


class TaskPayload(BaseModel):
    order: int
    language_type: str
    language_version: str
    submission_file: FileLocation
    test_cases: list[QueueTestCase]


class QueueMessage(BaseModel):
    """Request sent to the worker queue"""

    message_id: str
    type: MessageType
    payload: TaskPayload | None = None


class QueueResponseMessage(BaseModel):
    """Reply received on the response queue. `payload` depends on `type`."""

    message_id: str
    type: MessageType | str
    ok: bool = True
    payload: dict[str, Any] = Field(default_factory=dict)


class WorkerTestResult(BaseModel):
    order: int
    passed: bool
    status_code: int
    execution_time: float | None = None
    error_message: str = ""


class TaskResponsePayload(BaseModel):
    code: int
    message: str = ""
    test_results: list[WorkerTestResult] = Field(default_factory=list)


class StatusResponsePayload(BaseModel):
    busy_workers: int
    total_workers: int
    worker_status: dict[str, str] = Field(default_factory=dict)


class HandshakeLanguage(BaseModel):
    name: str
    versions: list[str]


class HandshakeResponsePayload(BaseModel):
    languages: list[HandshakeLanguage]


class WorkerStatus(BaseModel):
    busy_workers: int
    total_workers: int
    worker_status: dict[str, Literal["idle", "busy", "invalid"]]
    status_time: datetime


class QueueStatus(BaseModel):
    connected: bool
    pending_submissions: int
    last_checked: datetime
