"""hypequery: a typed query builder for ClickHouse.

hypequery builds parameterized ClickHouse SELECT statements through an
immutable fluent API, validates columns and filter values against a schema
as conditions are added, and executes queries through ``clickhouse-connect``.

Key Features:
    - Immutable, chainable query builder with joins, CTEs and aggregates
    - Eager validation of operators and values against column types
    - Reusable cross-filters with named date ranges
    - Cursor-based forward/backward pagination with caller-owned sessions

Example:
    >>> from hypequery import create_query_builder
    >>> db = create_query_builder(
    ...     {"host": "localhost"},
    ...     schema={"trips": {"id": "UInt64", "fare": "Float64"}},
    ... )
    >>> await db.table("trips").avg("fare").execute()
"""

# --- Query building --------------------------------------------------------
from .query import (
    JoinPath,
    JoinRelationships,
    PageInfo,
    PaginatedResult,
    PaginationSession,
    QueryBuilder,
    QueryConfig,
    SqlExpression,
    create_query_builder,
    date_part,
    format_date_time,
    raw,
    raw_as,
    to_date_time,
    to_start_of_interval,
)

# --- Schema ----------------------------------------------------------------
from .architecture import ColumnKind, DatabaseSchema

# --- Filters ---------------------------------------------------------------
from .filter import CrossFilter, FilterCondition, FilterGroup

# --- Database --------------------------------------------------------------
from .db import ClickHouseConfig, ClickHouseConnection

# --- Enums & errors --------------------------------------------------------
from .exceptions import (
    ColumnNotFoundError,
    ConnectionNotInitializedError,
    CursorDecodeError,
    HypequeryError,
    TableNotFoundError,
    UnsupportedOperatorError,
    ValidationError,
)
from .onto import FilterOperator, JoinType, LogicalOperator, OrderDirection

__all__ = [
    # Query building
    "QueryBuilder",
    "QueryConfig",
    "create_query_builder",
    "PaginationSession",
    "PaginatedResult",
    "PageInfo",
    "JoinPath",
    "JoinRelationships",
    "SqlExpression",
    "raw",
    "raw_as",
    "to_date_time",
    "format_date_time",
    "to_start_of_interval",
    "date_part",
    # Schema
    "DatabaseSchema",
    "ColumnKind",
    # Filters
    "CrossFilter",
    "FilterCondition",
    "FilterGroup",
    # Database
    "ClickHouseConfig",
    "ClickHouseConnection",
    # Enums & errors
    "FilterOperator",
    "JoinType",
    "LogicalOperator",
    "OrderDirection",
    "HypequeryError",
    "ValidationError",
    "ColumnNotFoundError",
    "TableNotFoundError",
    "UnsupportedOperatorError",
    "CursorDecodeError",
    "ConnectionNotInitializedError",
]
