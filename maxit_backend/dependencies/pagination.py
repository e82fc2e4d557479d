from typing import Annotated, Any

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy.sql import ColumnElement, Select

from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.lib.common import camel_to_snake

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class SortField(BaseModel):
    field: str
    descending: bool = False


class PaginationParams(BaseModel):
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort: list[SortField] = []


def parse_sort(value: str) -> list[SortField]:
    """Parse `field:asc,otherField:desc` into sort fields. The direction defaults to asc."""
    fields: list[SortField] = []
    for part in filter(None, (chunk.strip() for chunk in value.split(","))):
        name, _, direction = part.partition(":")
        direction = direction.strip().lower() or "asc"
        if not name.strip() or direction not in ("asc", "desc"):
            raise ServiceError(ErrorCode.INVALID_SORT_PARAM, f"Invalid sort expression '{part}'")
        fields.append(SortField(field=camel_to_snake(name.strip()), descending=direction == "desc"))
    return fields


def _single_query_value(request: Request, name: str, error_code: ErrorCode) -> str | None:
    values = request.query_params.getlist(name)
    if len(values) > 1:
        raise ServiceError(error_code, f"Query parameter '{name}' given more than once")
    return values[0] if values else None


def _parse_int(value: str | None, default: int, error_code: ErrorCode, name: str) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as parse_err:
        raise ServiceError(error_code, f"'{name}' must be an integer") from parse_err


def get_pagination_params(request: Request) -> PaginationParams:
    limit = _parse_int(
        _single_query_value(request, "limit", ErrorCode.INVALID_LIMIT_PARAM),
        DEFAULT_LIMIT,
        ErrorCode.INVALID_LIMIT_PARAM,
        "limit",
    )
    offset = _parse_int(
        _single_query_value(request, "offset", ErrorCode.INVALID_OFFSET_PARAM),
        0,
        ErrorCode.INVALID_OFFSET_PARAM,
        "offset",
    )
    if not 1 <= limit <= MAX_LIMIT:
        raise ServiceError(
            ErrorCode.INVALID_LIMIT_PARAM, f"'limit' must be between 1 and {MAX_LIMIT}"
        )
    if offset < 0:
        raise ServiceError(ErrorCode.INVALID_OFFSET_PARAM, "'offset' must not be negative")

    sort = _single_query_value(request, "sort", ErrorCode.INVALID_SORT_PARAM)
    return PaginationParams(limit=limit, offset=offset, sort=parse_sort(sort) if sort else [])


Pagination = Annotated[PaginationParams, Depends(get_pagination_params)]


def paginate(
    statement: Select[Any],
    params: PaginationParams,
    sortable: dict[str, ColumnElement[Any]],
    default_sort: str,
) -> Select[Any]:
    """Apply ordering, limit and offset. Only columns listed in `sortable` may be sorted on."""
    order_by = []
    for sort_field in params.sort or parse_sort(default_sort):
        if (column := sortable.get(sort_field.field)) is None:
            raise ServiceError(
                ErrorCode.INVALID_SORT_PARAM, f"Cannot sort by '{sort_field.field}'"
            )
        order_by.append(column.desc() if sort_field.descending else column.asc())

    return statement.order_by(*order_by).limit(params.limit).offset(params.offset)
