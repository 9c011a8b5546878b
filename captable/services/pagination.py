"""Page and sort helpers shared by list endpoints."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.sql.elements import ColumnElement

T = TypeVar("T")

MAX_SORT_FIELDS = 3


@dataclass(slots=True, frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int


@dataclass(slots=True, frozen=True)
class SortField:
    field: str
    descending: bool


def parse_sort(sort: str | None, allowed: set[str] | frozenset[str], default: SortField) -> list[SortField]:
    """Parse ``"-created_at,quantity"`` into sort fields, ignoring unknown names."""

    if not sort:
        return [default]
    parsed: list[SortField] = []
    for raw in sort.split(",")[:MAX_SORT_FIELDS]:
        raw = raw.strip()
        descending = raw.startswith("-")
        name = raw[1:] if descending else raw
        if name in allowed:
            parsed.append(SortField(field=name, descending=descending))
    return parsed or [default]


def apply_sort(stmt: Select[Any], fields: list[SortField], columns: dict[str, ColumnElement[Any]]) -> Select[Any]:
    for sort_field in fields:
        column = columns[sort_field.field]
        stmt = stmt.order_by(column.desc() if sort_field.descending else column.asc())
    return stmt


def paginate(stmt: Select[Any], *, page: int, limit: int) -> Select[Any]:
    page = max(page, 1)
    return stmt.offset((page - 1) * limit).limit(limit)


__all__ = ["Page", "SortField", "apply_sort", "paginate", "parse_sort"]
