"""Core enumerations shared by the query builder, formatter and filters.

This module provides the string-based enum base class used throughout the
package together with the fixed vocabularies of the query layer: filter
operators, conjunctions, join types, sort directions, aggregation functions
and time-bucketing methods.

Key Components:
    - BaseEnum: Base class for string enums with flexible membership testing
    - FilterOperator: Operators accepted by ``where`` and cross-filters
    - LogicalOperator: AND/OR combinators for conditions and groups
    - JoinType: Supported SQL join kinds
    - OrderDirection: ASC/DESC sort directions
    - AggregationFunction: Aggregates exposed as builder methods
    - TimeBucketMethod: ClickHouse ``toStartOf*`` functions

Example:
    >>> "eq" in FilterOperator  # True
    >>> "approx" in FilterOperator  # False
"""

from enum import EnumMeta

from strenum import StrEnum


class MetaEnum(EnumMeta):
    """Metaclass for flexible enumeration membership testing.

    Allows ``"value" in SomeEnum`` checks against raw values without
    instantiating the member first.
    """

    def __contains__(self, member: object) -> bool:
        if isinstance(member, self):
            return True
        try:
            self(member)
            return True
        except ValueError:
            return False


class BaseEnum(StrEnum, metaclass=MetaEnum):
    """Base class for string-based enumerations."""

    def __str__(self) -> str:
        """Return the enum value as string for proper serialization."""
        return self.value

    def __repr__(self) -> str:
        return self.value


def _register_yaml_representer():
    """Register a YAML representer so BaseEnum members dump as plain strings."""
    import yaml

    def base_enum_representer(dumper, data):
        return dumper.represent_scalar("tag:yaml.org,2002:str", str(data.value))

    yaml.add_representer(BaseEnum, base_enum_representer)
    yaml.add_multi_representer(BaseEnum, base_enum_representer)


_register_yaml_representer()


class FilterOperator(BaseEnum):
    """Comparison operators accepted in WHERE conditions.

    Attributes:
        EQ: Equality (``=``)
        NEQ: Inequality (``!=``)
        GT: Greater than (``>``)
        GTE: Greater than or equal (``>=``)
        LT: Less than (``<``)
        LTE: Less than or equal (``<=``)
        LIKE: Pattern match (``LIKE``)
        NOT_LIKE: Negated pattern match (``NOT LIKE``)
        IN: Membership in a list of values
        NOT_IN: Non-membership in a list of values
        BETWEEN: Inclusive range given as a two-element sequence
        IS_NULL: Null check, takes no value
        IS_NOT_NULL: Non-null check, takes no value
    """

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    NOT_LIKE = "notLike"
    IN = "in"
    NOT_IN = "notIn"
    BETWEEN = "between"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"


LIST_OPERATORS = frozenset({FilterOperator.IN, FilterOperator.NOT_IN})
NULL_CHECK_OPERATORS = frozenset({FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL})
PATTERN_OPERATORS = frozenset({FilterOperator.LIKE, FilterOperator.NOT_LIKE})


class LogicalOperator(BaseEnum):
    """Logical combinators for conditions and filter groups."""

    AND = "AND"
    OR = "OR"


class JoinType(BaseEnum):
    """Supported SQL join kinds."""

    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


class OrderDirection(BaseEnum):
    """Sort directions for ORDER BY."""

    ASC = "ASC"
    DESC = "DESC"

    def reversed(self) -> "OrderDirection":
        return OrderDirection.ASC if self == OrderDirection.DESC else OrderDirection.DESC


class AggregationFunction(BaseEnum):
    """Aggregates exposed as builder methods.

    The value is the SQL function name; the lower-cased value is the suffix
    used for default aliases (``price_sum``, ``id_count``...).
    """

    SUM = "SUM"
    COUNT = "COUNT"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"


class TimeBucketMethod(BaseEnum):
    """ClickHouse time-bucketing functions usable in ``group_by_time_interval``."""

    INTERVAL = "toStartOfInterval"
    MINUTE = "toStartOfMinute"
    HOUR = "toStartOfHour"
    DAY = "toStartOfDay"
    WEEK = "toStartOfWeek"
    MONTH = "toStartOfMonth"
    QUARTER = "toStartOfQuarter"
    YEAR = "toStartOfYear"


class DateRangeToken(BaseEnum):
    """Named date ranges understood by ``CrossFilter.add_date_range``."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_QUARTER = "this_quarter"
    YEAR_TO_DATE = "year_to_date"
