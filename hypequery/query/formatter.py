"""SQL clause rendering for ``QueryConfig``.

Each ``format_*`` method renders one clause body (without its keyword) from a
config. Values never appear in the output: every operand is a ``?``
placeholder, and ``collect_parameters`` yields the matching values in the
same order the placeholders were emitted.

Key Components:
    - OPERATOR_SYMBOLS: Binary operator table
    - SQLFormatter: Stateless clause renderer
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterator

from hypequery.exceptions import UnsupportedOperatorError, ValidationError
from hypequery.onto import FilterOperator
from hypequery.query.onto import (
    OrderByClause,
    QueryConfig,
    WhereCondition,
    WhereGroup,
)
from hypequery.query.util import PLACEHOLDER, is_aggregate, substitute_parameters

OPERATOR_SYMBOLS = MappingProxyType(
    {
        FilterOperator.EQ: "=",
        FilterOperator.NEQ: "!=",
        FilterOperator.GT: ">",
        FilterOperator.GTE: ">=",
        FilterOperator.LT: "<",
        FilterOperator.LTE: "<=",
        FilterOperator.LIKE: "LIKE",
        FilterOperator.NOT_LIKE: "NOT LIKE",
    }
)


def _operator(value: Any) -> FilterOperator:
    if value not in FilterOperator:
        raise UnsupportedOperatorError(value)
    return FilterOperator(value)


def operator_symbol(operator: FilterOperator | str) -> str:
    """SQL symbol for a binary operator.

    Raises:
        UnsupportedOperatorError: For operators without a symbol
    """
    op = _operator(operator)
    if op not in OPERATOR_SYMBOLS:
        raise UnsupportedOperatorError(operator)
    return OPERATOR_SYMBOLS[op]


class SQLFormatter:
    """Renders clause bodies of a SELECT; holds no state."""

    def format_select(self, config: QueryConfig) -> str:
        body = ", ".join(config.select) if config.select else "*"
        return f"DISTINCT {body}" if config.distinct else body

    def format_where(self, config: QueryConfig) -> str:
        return self._format_conditions(config.where)

    def _format_conditions(self, items: list[WhereCondition | WhereGroup]) -> str:
        parts: list[str] = []
        for item in items:
            if isinstance(item, WhereGroup):
                if not item.conditions:
                    continue
                rendered = f"({self._format_conditions(item.conditions)})"
            else:
                rendered = self.format_condition(item)
            if parts:
                parts.append(f" {item.conjunction} ")
            parts.append(rendered)
        return "".join(parts)

    def format_condition(self, condition: WhereCondition) -> str:
        """Render one condition with ``?`` placeholders."""
        op = _operator(condition.operator)
        column = condition.column
        if op == FilterOperator.IS_NULL:
            return f"{column} IS NULL"
        if op == FilterOperator.IS_NOT_NULL:
            return f"{column} IS NOT NULL"
        if op in (FilterOperator.IN, FilterOperator.NOT_IN):
            values = list(condition.value or [])
            if not values:
                return "1 = 0" if op == FilterOperator.IN else "1 = 1"
            keyword = "IN" if op == FilterOperator.IN else "NOT IN"
            placeholders = ", ".join(PLACEHOLDER for _ in values)
            return f"{column} {keyword} ({placeholders})"
        if op == FilterOperator.BETWEEN:
            return f"{column} BETWEEN {PLACEHOLDER} AND {PLACEHOLDER}"
        return f"{column} {operator_symbol(op)} {PLACEHOLDER}"

    def collect_parameters(self, config: QueryConfig) -> list[Any]:
        """Where-values in placeholder order, followed by HAVING parameters."""
        having = [value for params in config.having_parameters for value in params]
        return [*self._iter_parameters(config.where), *having]

    def _iter_parameters(
        self, items: list[WhereCondition | WhereGroup]
    ) -> Iterator[Any]:
        for item in items:
            if isinstance(item, WhereGroup):
                yield from self._iter_parameters(item.conditions)
                continue
            op = _operator(item.operator)
            if op in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL):
                continue
            if op in (FilterOperator.IN, FilterOperator.NOT_IN):
                yield from item.value or []
            elif op == FilterOperator.BETWEEN:
                if not isinstance(item.value, (list, tuple)) or len(item.value) != 2:
                    raise ValidationError(
                        "Operator 'between' requires an array with exactly two values"
                    )
                yield from item.value
            else:
                yield item.value

    def format_group_by(self, config: QueryConfig) -> str:
        return ", ".join(config.group_by)

    def format_having(self, config: QueryConfig, inline: bool = False) -> str:
        if not inline:
            return " AND ".join(config.having)
        fragments = []
        for i, fragment in enumerate(config.having):
            params = config.having_parameters[i] if i < len(config.having_parameters) else []
            fragments.append(substitute_parameters(fragment, params) if params else fragment)
        return " AND ".join(fragments)

    def format_order_by(self, config: QueryConfig) -> str:
        return ", ".join(self._order_entry(o) for o in config.order_by)

    @staticmethod
    def _order_entry(order: OrderByClause) -> str:
        return f"{order.column} {order.direction}".strip()

    def format_joins(self, config: QueryConfig) -> str:
        rendered = []
        for join in config.joins:
            table = f"{join.table} AS {join.alias}" if join.alias else join.table
            rendered.append(
                f"{join.type} JOIN {table} ON {join.left_column} = {join.right_column}"
            )
        return " ".join(rendered)

    def format_settings(self, config: QueryConfig) -> str:
        return ", ".join(
            f"{key}={self._setting_value(value)}"
            for key, value in config.settings.items()
        )

    @staticmethod
    def _setting_value(value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, str) and not value.lstrip("-").isdigit():
            return f"'{value}'"
        return str(value)

    def implicit_group_by(self, select: list[str]) -> list[str]:
        """Non-aggregate select entries, used as GROUP BY once an aggregate is added."""
        return [entry for entry in select if not is_aggregate(entry)]

    def render(self, table: str, config: QueryConfig, inline: bool = False) -> str:
        """Full SELECT, clauses in fixed order.

        With ``inline`` the values are substituted clause by clause, so only
        placeholders emitted here (and those of ``having`` fragments given
        parameters) are filled. CTE bodies, select expressions and raw
        fragments are copied as they are, even when they contain ``?``.
        """
        parts: list[str] = []
        if config.ctes:
            parts.append(f"WITH {', '.join(config.ctes)}")
        parts.append(f"SELECT {self.format_select(config)}")
        parts.append(f"FROM {table}")
        if config.joins:
            parts.append(self.format_joins(config))
        where = self.format_where(config)
        if where and inline:
            where = substitute_parameters(where, list(self._iter_parameters(config.where)))
        if where:
            parts.append(f"WHERE {where}")
        if config.group_by:
            parts.append(f"GROUP BY {self.format_group_by(config)}")
        if config.having:
            parts.append(f"HAVING {self.format_having(config, inline)}")
        if config.order_by:
            parts.append(f"ORDER BY {self.format_order_by(config)}")
        if config.limit is not None:
            parts.append(f"LIMIT {config.limit}")
            if config.offset:
                parts.append(f"OFFSET {config.offset}")
        if config.settings:
            parts.append(f"SETTINGS {self.format_settings(config)}")
        return " ".join(parts)
