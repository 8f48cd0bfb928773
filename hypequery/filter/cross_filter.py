"""Reusable, table-agnostic filter tree.

A ``CrossFilter`` accumulates conditions in a root AND group. It can be
built once (for example from dashboard state) and applied to any number of
query builders with ``QueryBuilder.apply_cross_filters``.

When constructed with a schema, every condition is validated as it is
added: the column is looked up across all tables (first table wins) and the
value is checked against that column's type. Null values are accepted.

Example:
    >>> cf = (
    ...     CrossFilter(schema)
    ...     .add({"column": "status", "operator": "eq", "value": "active"})
    ...     .add_group(
    ...         [{"column": "region", "operator": "eq", "value": "North"}], "OR"
    ...     )
    ... )
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterable

from hypequery.architecture.schema import DatabaseSchema
from hypequery.filter.date_range import (
    DateRange,
    as_datetime,
    last_n_days_range,
    previous_period,
    resolve_date_range,
    to_iso,
    year_over_year,
)
from hypequery.filter.onto import (
    FilterCondition,
    FilterGroup,
    OrderByClause,
    as_filter_item,
)
from hypequery.filter.validator import FilterValidator
from hypequery.onto import DateRangeToken, FilterOperator, LogicalOperator

logger = logging.getLogger(__name__)

FilterItem = FilterCondition | FilterGroup | dict[str, Any]


def _iso_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return to_iso(value)
    if isinstance(value, (list, tuple)):
        return [to_iso(v) if isinstance(v, (date, datetime)) else v for v in value]
    return value


class CrossFilter:
    """Tree of filter conditions rooted in an AND group."""

    def __init__(
        self,
        schema: DatabaseSchema | dict[str, dict[str, str]] | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        if schema is not None and not isinstance(schema, DatabaseSchema):
            schema = DatabaseSchema.from_dict(schema)
        self.schema: DatabaseSchema | None = schema
        self._now = now or datetime.now
        self._root = FilterGroup(operator=LogicalOperator.AND)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def get_column_type(self, column: str) -> str | None:
        """Type tag of ``column`` from the first table defining it.

        Returns None without a schema.

        Raises:
            ColumnNotFoundError: If a schema is set and no table has the column
        """
        if self.schema is None:
            return None
        return self.schema.find_column_type(column)

    def _validate(self, item: FilterCondition | FilterGroup) -> None:
        if self.schema is None:
            return
        if isinstance(item, FilterGroup):
            for child in item.conditions:
                self._validate(child)
            return
        FilterValidator.validate_filter_condition(
            item, self.get_column_type(item.column), allow_null=True
        )

    @staticmethod
    def _normalize(item: FilterCondition | FilterGroup) -> FilterCondition | FilterGroup:
        if isinstance(item, FilterGroup):
            item.conditions = [CrossFilter._normalize(c) for c in item.conditions]
            return item
        item.value = _iso_value(item.value)
        return item

    def _prepare(self, items: Iterable[FilterItem]) -> list[FilterCondition | FilterGroup]:
        prepared = [as_filter_item(item).model_copy(deep=True) for item in items]
        for item in prepared:
            self._validate(item)
        return [self._normalize(item) for item in prepared]

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add(self, condition: FilterCondition | dict[str, Any]) -> CrossFilter:
        """Validate and append one condition to the root group."""
        self._root.conditions.extend(self._prepare([condition]))
        return self

    def add_multiple(self, conditions: Iterable[FilterItem]) -> CrossFilter:
        """Append several conditions; nothing is appended if any is invalid."""
        self._root.conditions.extend(self._prepare(conditions))
        return self

    def add_group(
        self,
        conditions: Iterable[FilterItem],
        operator: LogicalOperator | str = LogicalOperator.AND,
    ) -> CrossFilter:
        """Wrap ``conditions`` in a nested group combined with ``operator``."""
        group = FilterGroup(operator=operator, conditions=self._prepare(conditions))
        self._root.conditions.append(group)
        return self

    def _add_between(self, column: str, bounds: DateRange) -> CrossFilter:
        return self.add(
            FilterCondition(
                column=column, operator=FilterOperator.BETWEEN, value=list(bounds)
            )
        )

    def add_date_range(self, column: str, date_range: DateRangeToken | str) -> CrossFilter:
        """Append a ``between`` condition for a named range such as ``last_7_days``."""
        bounds = resolve_date_range(date_range, self._now())
        logger.debug(f"Resolved date range {date_range} to {bounds[0]} .. {bounds[1]}")
        return self._add_between(column, bounds)

    def last_n_days(self, column: str, n: int) -> CrossFilter:
        return self._add_between(column, last_n_days_range(n, self._now()))

    def add_comparison_period(
        self, column: str, current_range: tuple[Any, Any]
    ) -> CrossFilter:
        """Filter on the period of equal length right before ``current_range``."""
        current = (as_datetime(current_range[0]), as_datetime(current_range[1]))
        return self._add_between(column, previous_period(current))

    def add_year_over_year(
        self, column: str, current_range: tuple[Any, Any]
    ) -> CrossFilter:
        """Filter on ``current_range`` shifted back one calendar year."""
        current = (as_datetime(current_range[0]), as_datetime(current_range[1]))
        return self._add_between(column, year_over_year(current))

    def top_n(self, value_column: str, n: int, direction: str = "desc") -> CrossFilter:
        """Keep rows with a positive ``value_column``, top ``n`` by it.

        The limit and ordering are stored on the root group and applied by
        ``QueryBuilder.apply_cross_filters``.
        """
        self.add(FilterCondition(column=value_column, operator=FilterOperator.GT, value=0))
        self._root.limit = n
        self._root.order_by = OrderByClause(
            column=value_column, direction=direction.upper()
        )
        return self

    def get_conditions(self) -> FilterGroup:
        """A deep copy of the root group; changes to it do not affect the filter."""
        return self._root.model_copy(deep=True)

    def __repr__(self) -> str:
        return f"CrossFilter({self._root.to_dict()})"
