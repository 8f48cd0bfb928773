"""Cross-filter tree model.

A cross-filter is a table-agnostic tree of conditions: leaves are
``FilterCondition`` objects, inner nodes are ``FilterGroup`` objects that
combine their children with AND or OR. The root group may additionally carry
top-N metadata (``limit`` and ``order_by``) that builders pick up when the
filter is applied.

Example:
    >>> group = FilterGroup.from_dict({
    ...     "operator": "OR",
    ...     "conditions": [
    ...         {"column": "region", "operator": "eq", "value": "North"},
    ...         {"column": "region", "operator": "eq", "value": "South"},
    ...     ],
    ... })
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from hypequery.architecture.base import ConfigBaseModel
from hypequery.onto import FilterOperator, LogicalOperator, OrderDirection


class OrderByClause(ConfigBaseModel):
    column: str
    direction: OrderDirection = OrderDirection.ASC


class FilterCondition(ConfigBaseModel):
    column: str
    operator: FilterOperator
    value: Any = None


class FilterGroup(ConfigBaseModel):
    """A node of the cross-filter tree.

    Attributes:
        operator: How the children are combined
        conditions: Leaves and nested groups, in insertion order
        limit: Top-N row limit (root group only)
        order_by: Top-N ordering (root group only)
    """

    operator: LogicalOperator = LogicalOperator.AND
    conditions: list[FilterCondition | FilterGroup] = Field(default_factory=list)
    limit: int | None = None
    order_by: OrderByClause | None = None


def as_filter_item(item: Any) -> FilterCondition | FilterGroup:
    """Coerce a dict (or model) into a condition or group.

    Dicts carrying a ``conditions`` key are groups, anything else a condition.
    """
    if isinstance(item, (FilterCondition, FilterGroup)):
        return item
    if isinstance(item, dict) and "conditions" in item:
        return FilterGroup.from_dict(item)
    return FilterCondition.from_dict(item)
