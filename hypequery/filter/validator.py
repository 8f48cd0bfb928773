"""Operator, value and column-type validation for filter conditions.

Validation runs eagerly, when a condition is added to a builder or a
cross-filter, so bad input fails at the call that introduced it rather than
at render or execution time.

Arity rules hold for every column: ``in``/``notIn`` take a sequence,
``between`` exactly two values, ``like``/``notLike`` a string, null checks no
value and everything else a scalar. Type rules apply only when the column
type is known and the column is not a ``table.column`` reference.

Key Components:
    - ValueValidator: Single-value and per-operator type checks
    - FilterValidator: Full condition validation (operator, null, arity, type)
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Mapping

from hypequery.architecture.schema import ColumnKind, column_kind, is_qualified
from hypequery.exceptions import UnsupportedOperatorError, ValidationError
from hypequery.filter.onto import FilterCondition
from hypequery.onto import (
    LIST_OPERATORS,
    NULL_CHECK_OPERATORS,
    PATTERN_OPERATORS,
    FilterOperator,
)

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


class ValueValidator:
    """Checks values against a ClickHouse column type tag."""

    @staticmethod
    def validate_single_value(column_type: str | None, value: Any, column: str) -> None:
        """Check one scalar against the column kind; None always passes here."""
        if value is None:
            return
        kind = column_kind(column_type)
        if kind == ColumnKind.NUMBER:
            if not _is_number(value):
                raise ValidationError(f"Invalid numeric value for column '{column}'")
        elif kind == ColumnKind.STRING:
            if not isinstance(value, str):
                raise ValidationError(f"Invalid string value for column '{column}'")
        elif kind == ColumnKind.DATE:
            if not isinstance(value, (date, str)):
                raise ValidationError(f"Invalid date value for column '{column}'")
        elif kind == ColumnKind.BOOLEAN:
            if not isinstance(value, bool) and value not in (0, 1):
                raise ValidationError(f"Invalid boolean value for column '{column}'")

    @classmethod
    def validate_filter_value(
        cls,
        column_type: str | None,
        operator: FilterOperator | str,
        value: Any,
        column: str,
    ) -> None:
        """Check arity and (when ``column_type`` is given) the type of ``value``.

        Raises:
            ValidationError: On arity or type mismatch
            UnsupportedOperatorError: If ``operator`` is unknown
        """
        if operator not in FilterOperator:
            raise UnsupportedOperatorError(operator)
        op = FilterOperator(operator)
        if op in NULL_CHECK_OPERATORS:
            return
        if op in LIST_OPERATORS:
            if not _is_sequence(value):
                raise ValidationError(
                    f"Operator '{op}' requires an array value for column '{column}'"
                )
            for item in value:
                cls.validate_single_value(column_type, item, column)
        elif op == FilterOperator.BETWEEN:
            if not _is_sequence(value) or len(value) != 2:
                raise ValidationError(
                    "Operator 'between' requires an array with exactly two values"
                )
            for item in value:
                cls.validate_single_value(column_type, item, column)
        elif op in PATTERN_OPERATORS:
            if not isinstance(value, str):
                raise ValidationError(
                    f"Operator '{op}' requires a string pattern for column '{column}'"
                )
        else:
            if _is_sequence(value):
                raise ValidationError(
                    f"Operator '{op}' requires a single value for column '{column}'"
                )
            cls.validate_single_value(column_type, value, column)


class FilterValidator:
    """Validates whole conditions before they are stored."""

    @staticmethod
    def is_joined_column(column: str) -> bool:
        return is_qualified(column)

    @classmethod
    def validate_filter_condition(
        cls,
        condition: FilterCondition | Mapping[str, Any],
        column_type: str | None = None,
        allow_null: bool = False,
    ) -> None:
        """Validate a condition's operator, nullability, arity and value type.

        Args:
            condition: Condition model (any object with ``column``, ``operator``
                and ``value`` attributes) or an equivalent dict
            column_type: Type tag of the column, if known
            allow_null: Accept a None value for value-taking operators

        Raises:
            ValidationError: If the condition is rejected
        """
        if isinstance(condition, Mapping):
            column = str(condition.get("column"))
            operator = condition.get("operator")
            value = condition.get("value")
        else:
            column, operator, value = condition.column, condition.operator, condition.value

        if operator not in FilterOperator:
            raise UnsupportedOperatorError(operator)
        op = FilterOperator(operator)
        if op in NULL_CHECK_OPERATORS:
            return
        if value is None:
            if allow_null:
                return
            raise ValidationError(
                f"Filter value for column '{column}' cannot be null/undefined"
            )
        if cls.is_joined_column(column):
            column_type = None
        ValueValidator.validate_filter_value(column_type, op, value, column)
