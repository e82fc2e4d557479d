from enum import StrEnum
from http import HTTPStatus


class ErrorCode(StrEnum):
    # 400
    INVALID_DATA = "ERR_INVALID_DATA"
    INVALID_ARCHIVE = "ERR_INVALID_ARCHIVE"
    INVALID_INPUT_OUTPUT = "ERR_INVALID_INPUT_OUTPUT"
    INVALID_LIMIT_PARAM = "ERR_INVALID_LIMIT_PARAM"
    INVALID_OFFSET_PARAM = "ERR_INVALID_OFFSET_PARAM"
    INVALID_SORT_PARAM = "ERR_INVALID_SORT_PARAM"
    INVALID_LANGUAGE = "ERR_INVALID_LANGUAGE"
    END_BEFORE_START = "ERR_END_BEFORE_START"
    FILE_TOO_LARGE = "ERR_FILE_TOO_LARGE"
    TASK_NOT_ASSIGNED = "ERR_TASK_NOT_ASSIGNED"

    # 401
    NOT_AUTHENTICATED = "ERR_NOT_AUTHENTICATED"
    INVALID_CREDENTIALS = "ERR_INVALID_CREDENTIALS"
    INVALID_TOKEN = "ERR_INVALID_TOKEN"
    TOKEN_EXPIRED = "ERR_TOKEN_EXPIRED"

    # 403
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_AUTHORIZED = "ERR_NOT_AUTHORIZED"
    PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    CANNOT_ASSIGN_OWNER = "ERR_CANNOT_ASSIGN_OWNER"
    CONTEST_REGISTRATION_CLOSED = "ERR_CONTEST_REGISTRATION_CLOSED"
    CONTEST_ENDED = "ERR_CONTEST_ENDED"
    CONTEST_NOT_STARTED = "ERR_CONTEST_NOT_STARTED"
    CONTEST_SUBMISSION_CLOSED = "ERR_CONTEST_SUBMISSION_CLOSED"
    TASK_SUBMISSION_CLOSED = "ERR_TASK_SUBMISSION_CLOSED"
    NOT_CONTEST_PARTICIPANT = "ERR_NOT_CONTEST_PARTICIPANT"

    # 404
    NOT_FOUND = "ERR_NOT_FOUND"
    USER_NOT_FOUND = "ERR_USER_NOT_FOUND"
    GROUP_NOT_FOUND = "ERR_GROUP_NOT_FOUND"
    TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    CONTEST_NOT_FOUND = "ERR_CONTEST_NOT_FOUND"
    SUBMISSION_NOT_FOUND = "ERR_SUBMISSION_NOT_FOUND"
    LANGUAGE_NOT_FOUND = "ERR_LANGUAGE_NOT_FOUND"
    NO_PENDING_REGISTRATION = "ERR_NO_PENDING_REGISTRATION"
    TASK_NOT_IN_CONTEST = "ERR_TASK_NOT_IN_CONTEST"

    # 409
    USER_ALREADY_EXISTS = "ERR_USER_ALREADY_EXISTS"
    TASK_EXISTS = "ERR_TASK_EXISTS"
    CONTEST_EXISTS = "ERR_CONTEST_EXISTS"
    ACCESS_ALREADY_EXISTS = "ERR_ACCESS_ALREADY_EXISTS"
    ALREADY_REGISTERED = "ERR_ALREADY_REGISTERED"
    ALREADY_PARTICIPANT = "ERR_ALREADY_PARTICIPANT"
    TASK_ALREADY_IN_CONTEST = "ERR_TASK_ALREADY_IN_CONTEST"

    INTERNAL = "ERR_INTERNAL"
    FILE_STORAGE = "ERR_FILE_STORAGE"
    QUEUE_NOT_CONNECTED = "ERR_QUEUE_NOT_CONNECTED"
    TIMEOUT = "ERR_TIMEOUT"


ERROR_STATUS: dict[ErrorCode, HTTPStatus] = {
    ErrorCode.INVALID_DATA: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_ARCHIVE: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_INPUT_OUTPUT: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_LIMIT_PARAM: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_OFFSET_PARAM: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_SORT_PARAM: HTTPStatus.BAD_REQUEST,
    ErrorCode.INVALID_LANGUAGE: HTTPStatus.BAD_REQUEST,
    ErrorCode.END_BEFORE_START: HTTPStatus.BAD_REQUEST,
    ErrorCode.FILE_TOO_LARGE: HTTPStatus.BAD_REQUEST,
    ErrorCode.TASK_NOT_ASSIGNED: HTTPStatus.BAD_REQUEST,
    ErrorCode.NOT_AUTHENTICATED: HTTPStatus.UNAUTHORIZED,
    ErrorCode.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    ErrorCode.INVALID_TOKEN: HTTPStatus.UNAUTHORIZED,
    ErrorCode.TOKEN_EXPIRED: HTTPStatus.UNAUTHORIZED,
    ErrorCode.FORBIDDEN: HTTPStatus.FORBIDDEN,
    ErrorCode.NOT_AUTHORIZED: HTTPStatus.FORBIDDEN,
    ErrorCode.PERMISSION_DENIED: HTTPStatus.FORBIDDEN,
    ErrorCode.CANNOT_ASSIGN_OWNER: HTTPStatus.FORBIDDEN,
    ErrorCode.CONTEST_REGISTRATION_CLOSED: HTTPStatus.FORBIDDEN,
    ErrorCode.CONTEST_ENDED: HTTPStatus.FORBIDDEN,
    ErrorCode.CONTEST_NOT_STARTED: HTTPStatus.FORBIDDEN,
    ErrorCode.CONTEST_SUBMISSION_CLOSED: HTTPStatus.FORBIDDEN,
    ErrorCode.TASK_SUBMISSION_CLOSED: HTTPStatus.FORBIDDEN,
    ErrorCode.NOT_CONTEST_PARTICIPANT: HTTPStatus.FORBIDDEN,
    ErrorCode.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.USER_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.GROUP_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.TASK_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.CONTEST_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.SUBMISSION_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.LANGUAGE_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.NO_PENDING_REGISTRATION: HTTPStatus.NOT_FOUND,
    ErrorCode.TASK_NOT_IN_CONTEST: HTTPStatus.NOT_FOUND,
    ErrorCode.USER_ALREADY_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.TASK_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.CONTEST_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.ACCESS_ALREADY_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.ALREADY_REGISTERED: HTTPStatus.CONFLICT,
    ErrorCode.ALREADY_PARTICIPANT: HTTPStatus.CONFLICT,
    ErrorCode.TASK_ALREADY_IN_CONTEST: HTTPStatus.CONFLICT,
    ErrorCode.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorCode.FILE_STORAGE: HTTPStatus.BAD_GATEWAY,
    ErrorCode.QUEUE_NOT_CONNECTED: HTTPStatus.SERVICE_UNAVAILABLE,
    ErrorCode.TIMEOUT: HTTPStatus.GATEWAY_TIMEOUT,
}

DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_DATA: "Invalid data",
    ErrorCode.INVALID_ARCHIVE: "Invalid task archive",
    ErrorCode.INVALID_INPUT_OUTPUT: "Input and output files do not match",
    ErrorCode.INVALID_LIMIT_PARAM: "Invalid limit parameter",
    ErrorCode.INVALID_OFFSET_PARAM: "Invalid offset parameter",
    ErrorCode.INVALID_SORT_PARAM: "Invalid sort parameter",
    ErrorCode.INVALID_LANGUAGE: "Invalid language",
    ErrorCode.END_BEFORE_START: "End time must be after start time",
    ErrorCode.FILE_TOO_LARGE: "File is too large",
    ErrorCode.TASK_NOT_ASSIGNED: "Task is not assigned to this user",
    ErrorCode.NOT_AUTHENTICATED: "Not authenticated",
    ErrorCode.INVALID_CREDENTIALS: "Invalid credentials",
    ErrorCode.INVALID_TOKEN: "Invalid token",
    ErrorCode.TOKEN_EXPIRED: "Token expired",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.NOT_AUTHORIZED: "Not authorized",
    ErrorCode.PERMISSION_DENIED: "Permission denied",
    ErrorCode.CANNOT_ASSIGN_OWNER: "Owner permission cannot be assigned",
    ErrorCode.CONTEST_REGISTRATION_CLOSED: "Contest registration is closed",
    ErrorCode.CONTEST_ENDED: "Contest has ended",
    ErrorCode.CONTEST_NOT_STARTED: "Contest has not started yet",
    ErrorCode.CONTEST_SUBMISSION_CLOSED: "Contest is not accepting submissions",
    ErrorCode.TASK_SUBMISSION_CLOSED: "Task is not accepting submissions",
    ErrorCode.NOT_CONTEST_PARTICIPANT: "User is not a participant of this contest",
    ErrorCode.NOT_FOUND: "Not found",
    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.GROUP_NOT_FOUND: "Group not found",
    ErrorCode.TASK_NOT_FOUND: "Task not found",
    ErrorCode.CONTEST_NOT_FOUND: "Contest not found",
    ErrorCode.SUBMISSION_NOT_FOUND: "Submission not found",
    ErrorCode.LANGUAGE_NOT_FOUND: "Language not found",
    ErrorCode.NO_PENDING_REGISTRATION: "No pending registration request",
    ErrorCode.TASK_NOT_IN_CONTEST: "Task is not part of this contest",
    ErrorCode.USER_ALREADY_EXISTS: "User already exists",
    ErrorCode.TASK_EXISTS: "Task with this title already exists",
    ErrorCode.CONTEST_EXISTS: "Contest with this name already exists",
    ErrorCode.ACCESS_ALREADY_EXISTS: "User already has access to this resource",
    ErrorCode.ALREADY_REGISTERED: "Registration request already submitted",
    ErrorCode.ALREADY_PARTICIPANT: "User is already a participant",
    ErrorCode.TASK_ALREADY_IN_CONTEST: "Task is already part of this contest",
    ErrorCode.INTERNAL: "Internal server error",
    ErrorCode.FILE_STORAGE: "File storage error",
    ErrorCode.QUEUE_NOT_CONNECTED: "Queue is not connected",
    ErrorCode.TIMEOUT: "Timed out waiting for a response",
}


class ServiceError(Exception):
    """Domain error raised by services and rendered by the app-level exception handler."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or DEFAULT_MESSAGES.get(code, code.value)
        super().__init__(self.message)

    @property
    def status_code(self) -> HTTPStatus:
        return ERROR_STATUS.get(self.code, HTTPStatus.INTERNAL_SERVER_ERROR)

    def __repr__(self) -> str:
        return f"ServiceError({self.code!s}, {self.message!r})"
