"""Immutable, fluent SELECT builder for ClickHouse.

Every chain method returns a new ``QueryBuilder``; the receiver is never
modified, so a base builder can be shared and specialised freely. Builders
created from a schema validate columns and filter values at the call that
introduces them.

Besides the ``QueryConfig`` the builder tracks a result-row descriptor
(``columns``): output column name to ``ColumnKind``. ``select`` narrows it,
aggregates add numeric entries, and ``execute`` uses it to coerce raw rows.

Key Components:
    - QueryBuilder: The chainable builder
    - QueryBuilderFactory: Schema-aware entry point with ``table(name)``
    - create_query_builder: Initializes the connection and returns a factory

Example:
    >>> db = create_query_builder(config, schema=schema)
    >>> q = (
    ...     db.table("test_table")
    ...     .select(["name"])
    ...     .sum("price")
    ...     .where("price", "gt", 100)
    ...     .order_by("price_sum", "DESC")
    ...     .limit(10)
    ... )
    >>> q.to_sql()
    'SELECT name, SUM(price) AS price_sum FROM test_table WHERE price > 100 GROUP BY name ORDER BY price_sum DESC LIMIT 10'
    >>> rows = await q.execute()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from typing import Any, AsyncIterator, Callable, Iterable

from suthing import Timer

from hypequery.architecture.schema import (
    ColumnKind,
    DatabaseSchema,
    column_kind,
    is_qualified,
    split_qualified,
)
from hypequery.db.clickhouse.conn import ClickHouseConnection
from hypequery.db.connection.onto import ClickHouseConfig
from hypequery.exceptions import (
    ColumnNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from hypequery.filter.cross_filter import CrossFilter
from hypequery.filter.onto import FilterCondition, FilterGroup, OrderByClause
from hypequery.filter.validator import FilterValidator
from hypequery.onto import (
    NULL_CHECK_OPERATORS,
    AggregationFunction,
    FilterOperator,
    JoinType,
    LogicalOperator,
    OrderDirection,
    TimeBucketMethod,
)
from hypequery.query.expressions import SqlExpression
from hypequery.query.formatter import SQLFormatter
from hypequery.query.onto import (
    JoinClause,
    PaginatedResult,
    QueryConfig,
    WhereCondition,
    WhereGroup,
)
from hypequery.query.pagination import PaginationSession, Paginator
from hypequery.query.relationships import JoinRelationships
from hypequery.query.util import coerce_row, is_aggregate, output_name

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ColumnDescriptor = dict[str, ColumnKind]


class QueryBuilder:
    """Chainable description of one SELECT on ``table``.

    Args:
        table: Table (or CTE alias) to select from
        schema: Optional schema used for validation and row typing
        relationships: Optional registry used by ``with_relation``
        config: Initial query state
        columns: Initial result-row descriptor; derived from the schema when omitted
    """

    def __init__(
        self,
        table: str,
        schema: DatabaseSchema | None = None,
        relationships: JoinRelationships | None = None,
        config: QueryConfig | None = None,
        columns: ColumnDescriptor | None = None,
    ):
        self._table = table
        self._schema = schema
        self._relationships = relationships
        self._config = config.model_copy(deep=True) if config else QueryConfig()
        self._formatter = SQLFormatter()
        if columns is None:
            columns = self._table_columns(table)
        self._columns: ColumnDescriptor = dict(columns)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self._table

    @property
    def schema(self) -> DatabaseSchema | None:
        return self._schema

    @property
    def config(self) -> QueryConfig:
        """A copy of the accumulated query state."""
        return self._config.model_copy(deep=True)

    @property
    def columns(self) -> ColumnDescriptor:
        """Output column name to value kind of the rows ``execute`` returns."""
        return dict(self._columns)

    row_type = columns

    def _clone(
        self, config: QueryConfig, columns: ColumnDescriptor | None = None
    ) -> QueryBuilder:
        return QueryBuilder(
            self._table,
            schema=self._schema,
            relationships=self._relationships,
            config=config,
            columns=self._columns if columns is None else columns,
        )

    def _blank(self) -> QueryBuilder:
        return QueryBuilder(
            self._table, schema=self._schema, relationships=self._relationships
        )

    def _with_order(self, orders: list[OrderByClause]) -> QueryBuilder:
        config = self.config
        config.order_by = list(orders)
        return self._clone(config)

    # ------------------------------------------------------------------
    # Schema lookups
    # ------------------------------------------------------------------

    def _table_columns(self, table: str) -> ColumnDescriptor:
        if self._schema is None or not self._schema.has_table(table):
            return {}
        return {
            name: column_kind(tag) for name, tag in self._schema.columns(table).items()
        }

    def _visible_tables(self) -> list[str]:
        tables = [self._table] + [j.table for j in self._config.joins]
        return [t for t in tables if self._schema is not None and self._schema.has_table(t)]

    def _column_type(self, column: str) -> str | None:
        """Type tag of a bare column among the visible tables.

        Qualified references, expressions, result aliases and tables outside
        the schema yield None (no validation).

        Raises:
            ColumnNotFoundError: If a bare identifier is defined by no visible table
        """
        if self._schema is None or not self._schema.has_table(self._table):
            return None
        if is_qualified(column) or not _IDENTIFIER.match(column):
            return None
        valid: list[str] = []
        for table in self._visible_tables():
            tag = self._schema.column_type(table, column)
            if tag is not None:
                return tag
            valid.extend(c for c in self._schema.columns(table) if c not in valid)
        if column in self._columns:
            # output alias of an aggregate or expression
            return None
        raise ColumnNotFoundError(column, valid)

    def _qualified_kind(self, column: str) -> ColumnKind:
        owner, name = split_qualified(column)
        if self._schema is not None and owner is not None:
            tag = self._schema.column_type(owner, name)
            if tag is not None:
                return column_kind(tag)
        return ColumnKind.STRING

    # ------------------------------------------------------------------
    # Projection and aggregation
    # ------------------------------------------------------------------

    def select(self, columns: Iterable[str | SqlExpression] | str) -> QueryBuilder:
        """Set the select list and narrow the row descriptor to it."""
        if isinstance(columns, (str, SqlExpression)):
            columns = [columns]
        entries = [str(c) for c in columns]
        table_kinds = self._table_columns(self._table)
        descriptor: ColumnDescriptor = {}
        for entry in entries:
            if entry == "*":
                descriptor.update(table_kinds)
            elif is_aggregate(entry):
                descriptor[output_name(entry)] = ColumnKind.ANY
            elif is_qualified(entry):
                descriptor[output_name(entry)] = self._qualified_kind(entry)
            else:
                tag = self._column_type(entry)
                descriptor[entry] = column_kind(tag) if tag else table_kinds.get(
                    entry, ColumnKind.ANY
                )
        config = self.config
        config.select = entries
        return self._clone(config, descriptor)

    def _aggregate(
        self, fn: AggregationFunction, column: str, alias: str | None
    ) -> QueryBuilder:
        self._column_type(column)
        alias = alias or f"{column}_{fn.value.lower()}"
        entry = f"{fn}({column}) AS {alias}"
        config = self.config
        if config.select:
            config.group_by = self._formatter.implicit_group_by(config.select)
            config.select = [*config.select, entry]
            columns = {**self._columns, alias: ColumnKind.NUMBER}
        else:
            config.select = [entry]
            columns = {alias: ColumnKind.NUMBER}
        return self._clone(config, columns)

    def sum(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self._aggregate(AggregationFunction.SUM, column, alias)

    def count(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self._aggregate(AggregationFunction.COUNT, column, alias)

    def avg(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self._aggregate(AggregationFunction.AVG, column, alias)

    def min(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self._aggregate(AggregationFunction.MIN, column, alias)

    def max(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self._aggregate(AggregationFunction.MAX, column, alias)

    def distinct(self) -> QueryBuilder:
        config = self.config
        config.distinct = True
        return self._clone(config)

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def _condition(
        self,
        column: str,
        operator: FilterOperator | str,
        value: Any,
        conjunction: LogicalOperator,
    ) -> QueryBuilder:
        column_type = self._column_type(column)
        FilterValidator.validate_filter_condition(
            {"column": column, "operator": operator, "value": value}, column_type
        )
        if isinstance(value, (tuple, set, frozenset)):
            value = list(value)
        config = self.config
        config.where.append(
            WhereCondition(
                column=column, operator=operator, value=value, conjunction=conjunction
            )
        )
        return self._clone(config)

    def where(
        self, column: str, operator: FilterOperator | str, value: Any = None
    ) -> QueryBuilder:
        """Add an AND-joined condition after validating it.

        Raises:
            ValidationError: For null values (except null checks), arity or
                type mismatches and unknown columns
            UnsupportedOperatorError: For unknown operators
        """
        return self._condition(column, operator, value, LogicalOperator.AND)

    def or_where(
        self, column: str, operator: FilterOperator | str, value: Any = None
    ) -> QueryBuilder:
        return self._condition(column, operator, value, LogicalOperator.OR)

    def where_between(self, column: str, bounds: tuple[Any, Any] | list[Any]) -> QueryBuilder:
        if len(bounds) != 2:
            raise ValidationError(
                "Operator 'between' requires an array with exactly two values"
            )
        low, high = bounds
        if low is None or high is None:
            raise ValidationError(
                f"Both bounds of where_between on column '{column}' must be set"
            )
        return self.where(column, FilterOperator.BETWEEN, [low, high])

    def _group(
        self, build: Callable[[QueryBuilder], QueryBuilder], conjunction: LogicalOperator
    ) -> QueryBuilder:
        inner = build(self._blank())
        if not isinstance(inner, QueryBuilder):
            raise ValidationError("where_group callback must return a query builder")
        config = self.config
        config.where.append(
            WhereGroup(conditions=inner.config.where, conjunction=conjunction)
        )
        return self._clone(config)

    def where_group(self, build: Callable[[QueryBuilder], QueryBuilder]) -> QueryBuilder:
        """Add a parenthesized AND-joined group built by ``build``.

        ``build`` receives an empty builder for the same table and returns the
        builder whose conditions form the group.
        """
        return self._group(build, LogicalOperator.AND)

    def or_where_group(self, build: Callable[[QueryBuilder], QueryBuilder]) -> QueryBuilder:
        return self._group(build, LogicalOperator.OR)

    def apply_cross_filters(self, cross_filter: CrossFilter) -> QueryBuilder:
        """Merge a cross-filter's conditions (and top-N settings) into WHERE."""
        root = cross_filter.get_conditions()
        builder = self
        if root.conditions:
            if root.operator == LogicalOperator.AND:
                builder = builder._apply_and(root.conditions)
            else:
                builder = builder.where_group(lambda b: b._apply_or(root.conditions))
        if root.order_by is not None:
            builder = builder.order_by(root.order_by.column, root.order_by.direction)
        if root.limit is not None:
            builder = builder.limit(root.limit)
        return builder

    def _apply_group(self, group: FilterGroup) -> QueryBuilder:
        if group.operator == LogicalOperator.AND:
            return self._apply_and(group.conditions)
        return self._apply_or(group.conditions)

    def _apply_item(
        self, item: FilterCondition | FilterGroup, first: bool, disjunct: bool
    ) -> QueryBuilder:
        use_or = disjunct and not first
        if isinstance(item, FilterGroup):
            if use_or:
                return self.or_where_group(lambda b: b._apply_group(item))
            return self.where_group(lambda b: b._apply_group(item))
        operator, value = item.operator, item.value
        if value is None and operator not in NULL_CHECK_OPERATORS:
            # null equality becomes a null check; other comparisons with null are dropped
            if operator == FilterOperator.EQ:
                operator = FilterOperator.IS_NULL
            elif operator == FilterOperator.NEQ:
                operator = FilterOperator.IS_NOT_NULL
            else:
                logger.debug(f"Skipping cross filter on {item.column}: {operator} null")
                return self
        if use_or:
            return self.or_where(item.column, operator, value)
        return self.where(item.column, operator, value)

    def _apply_and(self, items: list[FilterCondition | FilterGroup]) -> QueryBuilder:
        builder = self
        for item in items:
            builder = builder._apply_item(item, first=True, disjunct=False)
        return builder

    def _apply_or(self, items: list[FilterCondition | FilterGroup]) -> QueryBuilder:
        builder = self
        for i, item in enumerate(items):
            builder = builder._apply_item(item, first=i == 0, disjunct=True)
        return builder

    # ------------------------------------------------------------------
    # Grouping, ordering, limits
    # ------------------------------------------------------------------

    def group_by(self, columns: Iterable[str] | str) -> QueryBuilder:
        """Replace the GROUP BY list."""
        if isinstance(columns, str):
            columns = [columns]
        config = self.config
        config.group_by = [str(c) for c in columns]
        return self._clone(config)

    def group_by_time_interval(
        self,
        column: str,
        interval: str,
        method: TimeBucketMethod | str = TimeBucketMethod.INTERVAL,
    ) -> QueryBuilder:
        """Append a time bucket to GROUP BY.

        ``toStartOfInterval`` embeds ``INTERVAL <interval>``; the other
        ``toStartOf*`` methods take only the column.
        """
        if method not in TimeBucketMethod:
            raise ValidationError(
                f"Unsupported time bucketing method '{method}'. "
                f"Valid methods are: {', '.join(m.value for m in TimeBucketMethod)}"
            )
        method = TimeBucketMethod(method)
        if method == TimeBucketMethod.INTERVAL:
            bucket = f"{method}({column}, INTERVAL {interval})"
        else:
            bucket = f"{method}({column})"
        config = self.config
        config.group_by.append(bucket)
        return self._clone(config)

    def having(self, condition: str, params: Iterable[Any] | None = None) -> QueryBuilder:
        """Append a raw HAVING condition; ``?`` placeholders take ``params``."""
        config = self.config
        config.having.append(condition)
        config.having_parameters.append(list(params or []))
        return self._clone(config)

    def raw(self, sql: str) -> QueryBuilder:
        """Append an unvalidated fragment to HAVING, rendered verbatim."""
        config = self.config
        config.having.append(sql)
        config.having_parameters.append([])
        return self._clone(config)

    def order_by(
        self, column: str, direction: OrderDirection | str = OrderDirection.ASC
    ) -> QueryBuilder:
        direction = str(direction).upper()
        if direction not in OrderDirection:
            raise ValidationError(f"Invalid sort direction '{direction}'")
        config = self.config
        config.order_by.append(OrderByClause(column=str(column), direction=direction))
        return self._clone(config)

    @staticmethod
    def _check_count(name: str, count: int) -> int:
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError(f"{name} must be an integer, got {count!r}")
        if count < 0:
            raise ValidationError(f"{name} must be non-negative, got {count}")
        return count

    def limit(self, count: int) -> QueryBuilder:
        config = self.config
        config.limit = self._check_count("limit", count)
        return self._clone(config)

    def offset(self, count: int) -> QueryBuilder:
        config = self.config
        config.offset = self._check_count("offset", count)
        return self._clone(config)

    def settings(self, **opts: Any) -> QueryBuilder:
        """Attach ClickHouse settings, rendered as a trailing SETTINGS clause."""
        config = self.config
        config.settings.update(opts)
        return self._clone(config)

    # ------------------------------------------------------------------
    # Joins and CTEs
    # ------------------------------------------------------------------

    def _join(
        self,
        join_type: JoinType,
        table: str,
        left_column: str,
        right_column: str,
        alias: str | None = None,
    ) -> QueryBuilder:
        owner, name = split_qualified(right_column)
        if owner is None:
            raise ValidationError(
                f"Join column '{right_column}' must be qualified as table.column"
            )
        if self._schema is not None:
            if not self._schema.has_table(table):
                raise TableNotFoundError(table, self._schema.table_names)
            self._schema.require_column(table, name)
        config = self.config
        config.joins.append(
            JoinClause(
                type=join_type,
                table=table,
                left_column=left_column,
                right_column=right_column,
                alias=alias,
            )
        )
        return self._clone(config)

    def inner_join(
        self, table: str, left_column: str, right_column: str, alias: str | None = None
    ) -> QueryBuilder:
        return self._join(JoinType.INNER, table, left_column, right_column, alias)

    def left_join(
        self, table: str, left_column: str, right_column: str, alias: str | None = None
    ) -> QueryBuilder:
        return self._join(JoinType.LEFT, table, left_column, right_column, alias)

    def right_join(
        self, table: str, left_column: str, right_column: str, alias: str | None = None
    ) -> QueryBuilder:
        return self._join(JoinType.RIGHT, table, left_column, right_column, alias)

    def full_join(
        self, table: str, left_column: str, right_column: str, alias: str | None = None
    ) -> QueryBuilder:
        return self._join(JoinType.FULL, table, left_column, right_column, alias)

    def with_relation(
        self,
        name: str,
        join_type: JoinType | str | None = None,
        alias: str | None = None,
    ) -> QueryBuilder:
        """Apply a join (or join chain) registered under ``name``."""
        if self._relationships is None:
            raise ValidationError(
                "Join relationships have not been configured for this builder"
            )
        path = self._relationships.get(name)
        if path is None:
            raise ValidationError(f"Join relationship '{name}' not found")
        builder = self
        for step in path if isinstance(path, list) else [path]:
            builder = builder._join(
                JoinType(str(join_type or step.type or JoinType.INNER).upper()),
                step.to_table,
                step.left_column,
                f"{step.to_table}.{step.right_column}",
                alias or step.alias,
            )
        return builder

    def with_cte(self, alias: str, subquery: QueryBuilder | str) -> QueryBuilder:
        """Prepend ``alias AS (sql)``; builders are rendered with literal values."""
        sql = subquery.to_sql() if isinstance(subquery, QueryBuilder) else subquery
        config = self.config
        config.ctes.append(f"{alias} AS ({sql})")
        return self._clone(config)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_sql_with_params(self) -> tuple[str, list[Any]]:
        """SQL with ``?`` placeholders and the values that fill them, in order."""
        sql = self._formatter.render(self._table, self._config)
        return sql, self._formatter.collect_parameters(self._config)

    def to_sql(self) -> str:
        """SQL with values inlined; for logging and debugging."""
        return self._formatter.render(self._table, self._config, inline=True)

    def debug(self) -> QueryBuilder:
        logger.debug(
            f"QueryBuilder(table={self._table}, "
            f"schema={self._schema.to_dict() if self._schema else None}, "
            f"columns={self._columns}, config={self._config.to_dict()})"
        )
        return self

    def __repr__(self) -> str:
        return f"QueryBuilder({self._table!r}, {self.to_sql()!r})"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self) -> list[dict[str, Any]]:
        """Run the query and return rows coerced to the row descriptor.

        Client errors are logged and re-raised unchanged.
        """
        client = ClickHouseConnection.get_client()
        final_sql = self.to_sql()
        logger.info(f"Query started: {final_sql}")
        klepsidra = Timer()
        try:
            with klepsidra:
                result = await asyncio.to_thread(client.query, final_sql)
                rows = list(result.named_results())
        except Exception:
            logger.error(
                f"Query failed after {klepsidra.elapsed:.3f} sec: {final_sql}",
                exc_info=True,
            )
            raise
        logger.info(f"Query completed in {klepsidra.elapsed:.3f} sec, {len(rows)} rows")
        return [coerce_row(row, self._columns) for row in rows]

    async def stream(self) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield result rows in blocks as the server sends them."""
        client = ClickHouseConnection.get_client()
        final_sql = self.to_sql()
        logger.info(f"Stream started: {final_sql}")
        n_rows = 0
        klepsidra = Timer()
        try:
            with klepsidra:
                context = await asyncio.to_thread(client.query_row_block_stream, final_sql)
                with context:
                    names = list(context.source.column_names)
                    blocks = iter(context)
                    while True:
                        block = await asyncio.to_thread(next, blocks, None)
                        if block is None:
                            break
                        n_rows += len(block)
                        yield [
                            coerce_row(dict(zip(names, row)), self._columns)
                            for row in block
                        ]
        except Exception:
            logger.error(
                f"Stream failed after {klepsidra.elapsed:.3f} sec: {final_sql}",
                exc_info=True,
            )
            raise
        logger.info(f"Stream completed in {klepsidra.elapsed:.3f} sec, {n_rows} rows")

    async def stream_for_each(self, callback: Callable[[dict[str, Any]], Any]) -> None:
        """Call ``callback`` (sync or async) on every streamed row."""
        async for block in self.stream():
            for row in block:
                outcome = callback(row)
                if inspect.isawaitable(outcome):
                    await outcome

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def paginate(
        self,
        page_size: int,
        after: str | None = None,
        before: str | None = None,
        order_by: Iterable[Any] | None = None,
        session: PaginationSession | None = None,
    ) -> PaginatedResult:
        """Fetch one cursor page; see ``Paginator.paginate``."""
        return await Paginator(self, session).paginate(
            page_size, after=after, before=before, order_by=order_by
        )

    async def first_page(
        self,
        page_size: int,
        order_by: Iterable[Any] | None = None,
        session: PaginationSession | None = None,
    ) -> PaginatedResult:
        return await Paginator(self, session).first_page(page_size, order_by=order_by)

    def iterate_pages(
        self,
        page_size: int,
        order_by: Iterable[Any] | None = None,
        session: PaginationSession | None = None,
    ) -> AsyncIterator[PaginatedResult]:
        """Async iterator over all pages; each call starts from the first page."""
        return Paginator(self, session).iterate_pages(page_size, order_by=order_by)


class QueryBuilderFactory:
    """Hands out builders for tables of one schema."""

    def __init__(
        self,
        schema: DatabaseSchema | None = None,
        relationships: JoinRelationships | None = None,
    ):
        self.schema = schema
        self.relationships = relationships

    def table(self, name: str) -> QueryBuilder:
        """Builder selecting from ``name``.

        Raises:
            TableNotFoundError: If a schema is set and does not define ``name``
        """
        if self.schema is not None and not self.schema.has_table(name):
            raise TableNotFoundError(name, self.schema.table_names)
        return QueryBuilder(name, schema=self.schema, relationships=self.relationships)


def create_query_builder(
    config: ClickHouseConfig | dict[str, Any] | None = None,
    schema: DatabaseSchema | dict[str, dict[str, str]] | None = None,
    relationships: JoinRelationships | None = None,
    client: Any | None = None,
) -> QueryBuilderFactory:
    """Initialize the process-wide connection and return a builder factory.

    Args:
        config: Connection settings; ignored for client creation when ``client`` is given
        schema: Table to column to type tag mapping, as a model or plain dict
        relationships: Named joins available to ``with_relation``
        client: Pre-built client with the ``clickhouse_connect`` interface
    """
    ClickHouseConnection.initialize(config, client=client)
    if schema is not None and not isinstance(schema, DatabaseSchema):
        schema = DatabaseSchema.from_dict(schema)
    return QueryBuilderFactory(schema=schema, relationships=relationships)
