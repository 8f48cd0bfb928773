"""Data model of a SELECT query under construction.

``QueryConfig`` is the full accumulated state of a builder. It is a plain
pydantic model: the builder never mutates one in place, it deep-copies and
edits the copy, so a config captured from a builder stays valid forever.

Key Components:
    - WhereCondition: ``column operator value`` with its leading conjunction
    - WhereGroup: Parenthesized list of conditions/groups
    - JoinClause: ``<TYPE> JOIN table [AS alias] ON left = right``
    - OrderByClause: Column and direction
    - QueryConfig: Everything needed to render one SELECT
    - PageInfo / PaginatedResult: Pagination output
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from hypequery.architecture.base import ConfigBaseModel
from hypequery.filter.onto import OrderByClause
from hypequery.onto import FilterOperator, JoinType, LogicalOperator


class WhereCondition(ConfigBaseModel):
    """A single WHERE predicate.

    ``conjunction`` joins this condition to the one *before* it; it is
    ignored for the first condition of a list.
    """

    column: str
    operator: FilterOperator
    value: Any = None
    conjunction: LogicalOperator = LogicalOperator.AND


class WhereGroup(ConfigBaseModel):
    """A parenthesized group of conditions, itself joined by ``conjunction``."""

    conditions: list[WhereCondition | WhereGroup] = Field(default_factory=list)
    conjunction: LogicalOperator = LogicalOperator.AND


class JoinClause(ConfigBaseModel):
    type: JoinType = JoinType.INNER
    table: str
    left_column: str
    right_column: str
    alias: str | None = None


class QueryConfig(ConfigBaseModel):
    """Accumulated state of one SELECT query.

    Attributes:
        select: Projected columns and ``FN(col) AS alias`` expressions
        where: Top-level conditions and groups, in call order
        group_by: GROUP BY entries
        having: Raw HAVING fragments, AND-joined on render
        having_parameters: Positional values per ``having`` fragment, aligned by index
        order_by: ORDER BY entries
        limit: Row limit; rendered whenever set, including 0
        offset: Row offset; rendered only together with ``limit``
        distinct: Whether to render ``SELECT DISTINCT``
        joins: Join clauses in registration order
        ctes: Rendered ``alias AS (sql)`` definitions
        settings: Engine settings rendered as a trailing SETTINGS clause
    """

    select: list[str] = Field(default_factory=list)
    where: list[WhereCondition | WhereGroup] = Field(default_factory=list)
    group_by: list[str] = Field(default_factory=list)
    having: list[str] = Field(default_factory=list)
    having_parameters: list[list[Any]] = Field(default_factory=list)
    order_by: list[OrderByClause] = Field(default_factory=list)
    limit: int | None = None
    offset: int | None = None
    distinct: bool = False
    joins: list[JoinClause] = Field(default_factory=list)
    ctes: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class PageInfo(ConfigBaseModel):
    has_next_page: bool
    has_previous_page: bool
    start_cursor: str | None = None
    end_cursor: str | None = None
    total_count: int = 0
    total_pages: int = 0
    page_size: int


class PaginatedResult(ConfigBaseModel):
    """One page of rows plus navigation info."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    page_info: PageInfo
