"""Cursor-based pagination over a query builder.

A page is fetched by ordering the wrapped builder, translating the cursor
into a condition on the first ordering column and requesting one row more
than the page size; the extra "peek" row tells whether more data exists.
Backward pages (``before``) run with every ordering reversed and are flipped
back into display order afterwards.

Cursor history lives in a caller-owned ``PaginationSession``: one session per
logical client (a request, a user, an ``iterate_pages`` run) keeps
concurrent paginations from interfering with each other.

Key Components:
    - encode_cursor / decode_cursor: base64(JSON) cursor codec
    - CursorStack: Issued ``after`` cursors and the current position
    - PaginationSession: Cursor stacks keyed by table name
    - Paginator: Runs the per-page protocol against a builder
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable

from pydantic import Field

from hypequery.architecture.base import ConfigBaseModel
from hypequery.exceptions import CursorDecodeError, ValidationError
from hypequery.filter.date_range import to_iso
from hypequery.filter.onto import OrderByClause
from hypequery.onto import FilterOperator, OrderDirection
from hypequery.query.onto import PageInfo, PaginatedResult
from hypequery.query.util import output_name

if TYPE_CHECKING:
    from hypequery.query.builder import QueryBuilder

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cursor codec
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return to_iso(value)
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def encode_cursor(values: dict[str, Any]) -> str:
    """base64 of the JSON object mapping ordering column to value."""
    payload = json.dumps(values, default=_json_default, separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> dict[str, Any]:
    """Inverse of ``encode_cursor``.

    Raises:
        CursorDecodeError: If the cursor is not base64-encoded JSON object text
    """
    try:
        raw = base64.b64decode(cursor.encode("ascii"), validate=True)
        values = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise CursorDecodeError(f"Malformed pagination cursor: {cursor!r}") from e
    if not isinstance(values, dict):
        raise CursorDecodeError(f"Pagination cursor is not an object: {cursor!r}")
    return values


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class CursorStack(ConfigBaseModel):
    stack: list[str] = Field(default_factory=list)
    position: int = -1

    def push_after(self, cursor: str) -> None:
        """Drop forward history past the current position, then push."""
        del self.stack[self.position + 1 :]
        self.stack.append(cursor)
        self.position = len(self.stack) - 1

    def rewind_before(self, cursor: str) -> None:
        if cursor in self.stack:
            self.position = max(-1, self.stack.index(cursor) - 1)
            return
        if self.position == len(self.stack) - 1:
            self.stack.append(cursor)
        self.position = max(-1, self.position - 1)


class PaginationSession:
    """Cursor stacks of one logical client, keyed by table name."""

    def __init__(self):
        self._stacks: dict[str, CursorStack] = {}

    def stack(self, key: str) -> CursorStack:
        return self._stacks.setdefault(key, CursorStack())

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._stacks.clear()
        else:
            self._stacks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._stacks


# ---------------------------------------------------------------------------
# Paginator
# ---------------------------------------------------------------------------


def _normalize_order(
    order_by: Iterable[OrderByClause | dict[str, Any] | tuple[str, str] | str] | None,
) -> list[OrderByClause]:
    orders: list[OrderByClause] = []
    for item in order_by or []:
        if isinstance(item, OrderByClause):
            orders.append(item)
        elif isinstance(item, dict):
            orders.append(OrderByClause.from_dict(item))
        elif isinstance(item, str):
            orders.append(OrderByClause(column=item))
        else:
            column, direction = item
            orders.append(OrderByClause(column=column, direction=direction.upper()))
    return orders


def _reverse(orders: list[OrderByClause]) -> list[OrderByClause]:
    return [
        OrderByClause(
            column=o.column, direction=OrderDirection(o.direction).reversed()
        )
        for o in orders
    ]


class Paginator:
    """Fetches pages of a builder's result set.

    Args:
        builder: Builder to paginate; it is never mutated
        session: Cursor history; a private session is created when omitted
    """

    def __init__(self, builder: QueryBuilder, session: PaginationSession | None = None):
        self.builder = builder
        self.session = session if session is not None else PaginationSession()

    def _effective_order(
        self, order_by: list[OrderByClause]
    ) -> tuple[list[OrderByClause], list[OrderByClause]]:
        """Return (cursor ordering, full query ordering).

        Explicit orderings are appended to the builder's own; without them the
        builder's ordering is used, and failing that the first result column.
        """
        existing = self.builder.config.order_by
        if order_by:
            return order_by, existing + order_by
        if existing:
            return existing, existing
        first = next(iter(self.builder.columns), None)
        if first is None:
            return [], []
        default = [OrderByClause(column=first)]
        return default, default

    async def paginate(
        self,
        page_size: int,
        after: str | None = None,
        before: str | None = None,
        order_by: Iterable[Any] | None = None,
    ) -> PaginatedResult:
        """Fetch one page.

        Args:
            page_size: Rows per page, at least 1
            after: End cursor of the previous page, to move forward
            before: Start cursor of the next page, to move backward
            order_by: Orderings as ``OrderByClause``, dicts, ``(column, dir)``
                pairs or bare column names

        Raises:
            ValidationError: For a non-positive page size or both cursors set
            CursorDecodeError: For a malformed cursor
        """
        if page_size < 1:
            raise ValidationError(f"Page size must be positive, got {page_size}")
        if after and before:
            raise ValidationError("Only one of 'after' and 'before' may be given")

        stack = self.session.stack(self.builder.table_name)
        if after:
            stack.push_after(after)
        elif before:
            stack.rewind_before(before)

        cursor_order, query_order = self._effective_order(_normalize_order(order_by))
        cursor = after or before
        values = decode_cursor(cursor) if cursor else {}
        if values and not cursor_order:
            # nothing else to order by: follow the column the cursor was cut on
            cursor_order = [OrderByClause(column=next(iter(values)))]
            query_order = list(cursor_order)
        page = self.builder
        if cursor and cursor_order:
            column = cursor_order[0].column
            direction = cursor_order[0].direction
            if column not in values:
                raise CursorDecodeError(
                    f"Pagination cursor has no value for column '{column}'"
                )
            if before:
                op = FilterOperator.GT if direction == OrderDirection.DESC else FilterOperator.LT
            else:
                op = FilterOperator.LT if direction == OrderDirection.DESC else FilterOperator.GT
            page = page.where(column, op, values[column])
        if before:
            query_order = _reverse(query_order)
        page = page._with_order(query_order).limit(page_size + 1)

        results = await page.execute()
        has_more = len(results) > page_size
        # the peek row is the one farthest from the cursor, so drop it first
        data = results[:page_size]
        if before:
            data.reverse()

        start_cursor = self._row_cursor(data[0], cursor_order) if data else None
        end_cursor = self._row_cursor(data[-1], cursor_order) if data else None

        if not cursor:
            has_next, has_previous = has_more, bool(data) and stack.position > 0
        elif before:
            has_next, has_previous = True, bool(data) and (stack.position >= 0 or has_more)
        else:
            has_next, has_previous = has_more, bool(data)

        logger.debug(
            f"Page of {len(data)} rows from {self.builder.table_name}: "
            f"has_next={has_next}, has_previous={has_previous}, "
            f"stack position {stack.position}/{len(stack.stack)}"
        )
        return PaginatedResult(
            data=data,
            page_info=PageInfo(
                has_next_page=has_next,
                has_previous_page=has_previous,
                start_cursor=start_cursor,
                end_cursor=end_cursor,
                page_size=page_size,
            ),
        )

    @staticmethod
    def _row_cursor(row: dict[str, Any], orders: list[OrderByClause]) -> str:
        if orders:
            return encode_cursor({o.column: row.get(output_name(o.column)) for o in orders})
        first = next(iter(row), None)
        return encode_cursor({first: row[first]} if first is not None else {})

    async def first_page(
        self, page_size: int, order_by: Iterable[Any] | None = None
    ) -> PaginatedResult:
        return await self.paginate(page_size, order_by=order_by)

    async def iterate_pages(
        self, page_size: int, order_by: Iterable[Any] | None = None
    ) -> AsyncIterator[PaginatedResult]:
        """Yield pages front to back until one reports no next page."""
        order = _normalize_order(order_by)
        cursor: str | None = None
        while True:
            result = await self.paginate(page_size, after=cursor, order_by=order)
            yield result
            if not result.page_info.has_next_page:
                break
            cursor = result.page_info.end_cursor
