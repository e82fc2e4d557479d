import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from maxit_backend.errors import DEFAULT_MESSAGES, ErrorCode, ServiceError
from maxit_backend.schemas.common import APIErrorResponse, ErrorDetail

logger = logging.getLogger(__name__)

_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def error_response(
    status_code: int, code: str, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    body = APIErrorResponse(data=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def validation_code(error: dict[str, Any]) -> str:
    """Map a pydantic error to the short code reported to clients."""
    error_type = error.get("type", "")
    ctx = error.get("ctx") or {}

    match error_type:
        case "missing":
            return "FIELD_REQUIRED"
        case "string_too_short" | "too_short":
            return f"MIN_LENGTH_{ctx.get('min_length')}"
        case "string_too_long" | "too_long":
            return f"MAX_LENGTH_{ctx.get('max_length')}"
        case "field_must_match":
            return f"FIELD_MUST_MATCH_{ctx.get('other')}"
        case "enum" | "literal_error":
            return "INVALID_ENUM"
        case "value_error" if "email" in str(error.get("msg", "")).lower():
            return "INVALID_EMAIL"
        case _:
            return "INVALID_FIELD"


def validation_field(loc: tuple[Any, ...] | list[Any]) -> str:
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in _REQUEST_LOCATIONS:
        parts = parts[1:]
    return ".".join(parts) or "body"


async def service_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ServiceError)
    status = exc.status_code
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.exception(f"{exc.code}: {exc.message}", exc_info=exc)

    headers = {"WWW-Authenticate": "Bearer"} if status == HTTPStatus.UNAUTHORIZED else None
    return error_response(status, exc.code, exc.message, headers)


async def validation_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    fields: dict[str, dict[str, str]] = {}
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            fields["body"] = {"code": "INVALID_JSON"}
            continue
        # Keep the first problem reported for each field
        fields.setdefault(validation_field(error.get("loc", ())), {"code": validation_code(error)})

    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST, content={"ok": False, "data": fields}
    )


async def http_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "Error"
    code = "ERR_" + phrase.upper().replace(" ", "_").replace("-", "_")
    return error_response(exc.status_code, code, str(exc.detail), exc.headers)


async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", exc_info=exc)
    return error_response(
        HTTPStatus.INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL, DEFAULT_MESSAGES[ErrorCode.INTERNAL]
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
