"""Raw SQL expressions for select lists.

Expressions are rendered verbatim, without validation or escaping; they are
meant for trusted, code-defined SQL such as ClickHouse function calls.

Example:
    >>> builder.select(["id", date_part("year", "created_at", "year")])
    >>> # SELECT id, toYear(created_at) AS year FROM ...
"""

from __future__ import annotations

from typing import Literal

DatePart = Literal["year", "quarter", "month", "week", "day", "hour", "minute", "second"]


class SqlExpression:
    """A SQL fragment, optionally aliased."""

    __slots__ = ("sql", "alias")

    def __init__(self, sql: str, alias: str | None = None):
        self.sql = sql
        self.alias = alias

    def to_sql(self) -> str:
        if self.alias:
            return f"{self.sql} AS {self.alias}"
        return self.sql

    def __str__(self) -> str:
        return self.to_sql()

    def __repr__(self) -> str:
        return f"SqlExpression({self.to_sql()!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SqlExpression):
            return self.to_sql() == other.to_sql()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_sql())


def raw(sql: str) -> SqlExpression:
    return SqlExpression(sql)


def raw_as(sql: str, alias: str) -> SqlExpression:
    return SqlExpression(sql, alias)


def to_date_time(field: str, alias: str | None = None) -> SqlExpression:
    return SqlExpression(f"toDateTime({field})", alias)


def format_date_time(
    field: str,
    fmt: str,
    timezone: str | None = None,
    alias: str | None = None,
) -> SqlExpression:
    """``formatDateTime(field, 'fmt'[, 'timezone'])``."""
    sql = f"formatDateTime({field}, '{fmt}'"
    if timezone:
        sql += f", '{timezone}'"
    return SqlExpression(sql + ")", alias)


def to_start_of_interval(
    field: str, interval: str, alias: str | None = None
) -> SqlExpression:
    """``toStartOfInterval(field, INTERVAL <interval>)``, e.g. interval ``'15 minute'``."""
    return SqlExpression(f"toStartOfInterval({field}, INTERVAL {interval})", alias)


def date_part(part: DatePart, field: str, alias: str | None = None) -> SqlExpression:
    """``toYear(field)``, ``toMonth(field)``... for the given part."""
    return SqlExpression(f"to{part.capitalize()}({field})", alias)
