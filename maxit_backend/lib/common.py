import re
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from sqlmodel import MetaData, SQLModel


T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


def create_multi_index(
    items: list[T],
    key_fn: Callable[[T], K],
    value_fn: Callable[[T], V],
    filter_fn: Callable[[T], bool] = lambda _: True,
) -> defaultdict[K, list[V]]:
    """Create a one-to-many mapping index from a single list of items"""
    index = defaultdict(list)
    for item in filter(filter_fn, items):
        index[key_fn(item)].append(value_fn(item))
    return index


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class CustomSQLModel(SQLModel):
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_`%(constraint_name)s`",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )
