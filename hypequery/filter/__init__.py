"""Filter conditions, validation and reusable cross-filters.

Key Components:
    - CrossFilter: Table-agnostic AND/OR condition tree with date helpers
    - FilterValidator / ValueValidator: Eager operator and value checks
    - FilterCondition / FilterGroup: Cross-filter tree nodes

Example:
    >>> from hypequery.filter import CrossFilter
    >>> cf = CrossFilter().add({"column": "status", "operator": "eq", "value": "active"})
    >>> builder.apply_cross_filters(cf)
"""

from .cross_filter import CrossFilter
from .date_range import resolve_date_range
from .onto import FilterCondition, FilterGroup, OrderByClause
from .validator import FilterValidator, ValueValidator

__all__ = [
    "CrossFilter",
    "FilterCondition",
    "FilterGroup",
    "FilterValidator",
    "OrderByClause",
    "ValueValidator",
    "resolve_date_range",
]
