"""Query construction, rendering, execution and pagination.

Key Components:
    - QueryBuilder: Immutable fluent SELECT builder
    - create_query_builder: Connection setup plus schema-aware builder factory
    - SQLFormatter: Clause rendering with ``?`` placeholders
    - PaginationSession: Caller-owned cursor history
    - JoinRelationships: Named reusable joins
"""

from .builder import QueryBuilder, QueryBuilderFactory, create_query_builder
from .expressions import (
    SqlExpression,
    date_part,
    format_date_time,
    raw,
    raw_as,
    to_date_time,
    to_start_of_interval,
)
from .formatter import SQLFormatter
from .onto import PageInfo, PaginatedResult, QueryConfig
from .pagination import PaginationSession, Paginator, decode_cursor, encode_cursor
from .relationships import JoinPath, JoinRelationships

__all__ = [
    "JoinPath",
    "JoinRelationships",
    "PageInfo",
    "PaginatedResult",
    "PaginationSession",
    "Paginator",
    "QueryBuilder",
    "QueryBuilderFactory",
    "QueryConfig",
    "SQLFormatter",
    "SqlExpression",
    "create_query_builder",
    "date_part",
    "decode_cursor",
    "encode_cursor",
    "format_date_time",
    "raw",
    "raw_as",
    "to_date_time",
    "to_start_of_interval",
]
