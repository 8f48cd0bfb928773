"""Database schema: table to column to ClickHouse type tag.

The schema is the runtime registry consulted by every builder call that
references a column. Type tags are kept verbatim (``"Nullable(String)"``,
``"DateTime64(3)"``...) and interpreted on demand: wrappers are peeled off
and the base type is mapped to a :class:`ColumnKind` describing which Python
values it accepts and how result rows are coerced.

Key Components:
    - ColumnKind: Python-side value kinds of ClickHouse columns
    - parse_type: Peels ``Nullable``/``LowCardinality`` wrappers off a tag
    - column_kind: Maps a tag to its ColumnKind
    - DatabaseSchema: Immutable table/column/type registry

Example:
    >>> schema = DatabaseSchema.from_dict(
    ...     {"test_table": {"id": "Int32", "name": "String"}}
    ... )
    >>> schema.column_type("test_table", "id")
    'Int32'
    >>> column_kind("Nullable(Float64)")
    <ColumnKind.NUMBER: 'number'>
"""

from __future__ import annotations

import logging
import re
from typing import Any, NamedTuple

from pydantic import ConfigDict, model_validator

from hypequery.architecture.base import ConfigBaseModel
from hypequery.exceptions import ColumnNotFoundError, TableNotFoundError
from hypequery.onto import BaseEnum

logger = logging.getLogger(__name__)


class ColumnKind(BaseEnum):
    """Kinds of Python values a ClickHouse column holds.

    Attributes:
        NUMBER: Integers, floats and decimals
        STRING: String, FixedString, UUID, Enum8/Enum16
        DATE: Date, Date32, DateTime, DateTime64
        BOOLEAN: Bool
        ARRAY: Array(T)
        MAP: Map(K, V)
        ANY: Tags this module does not recognise
    """

    NUMBER = "number"
    STRING = "string"
    DATE = "date"
    BOOLEAN = "boolean"
    ARRAY = "array"
    MAP = "map"
    ANY = "any"


_WRAPPERS = ("Nullable", "LowCardinality")

_NUMERIC_RE = re.compile(r"^(U?Int\d+|Float\d+|Decimal\d*)$")
_DATE_RE = re.compile(r"^(Date|Date32|DateTime|DateTime64)$")
_STRING_RE = re.compile(r"^(String|FixedString|UUID|Enum8|Enum16|IPv4|IPv6)$")
_TAG_RE = re.compile(r"^\s*(\w+)\s*(?:\((.*)\))?\s*$", re.DOTALL)


class ParsedType(NamedTuple):
    """A type tag split into base name, arguments and wrapper flags."""

    name: str
    args: str | None
    nullable: bool
    low_cardinality: bool


def parse_type(tag: str) -> ParsedType:
    """Split a type tag, unwrapping ``Nullable(...)`` and ``LowCardinality(...)``.

    ``LowCardinality(Nullable(String))`` yields
    ``ParsedType("String", None, nullable=True, low_cardinality=True)``.
    """
    nullable = False
    low_cardinality = False
    current = tag.strip()
    while True:
        m = _TAG_RE.match(current)
        if m is None:
            return ParsedType(current, None, nullable, low_cardinality)
        name, args = m.group(1), m.group(2)
        if name in _WRAPPERS and args is not None:
            nullable = nullable or name == "Nullable"
            low_cardinality = low_cardinality or name == "LowCardinality"
            current = args
            continue
        return ParsedType(name, args, nullable, low_cardinality)


def unwrap_type(tag: str) -> str:
    """Return the tag with ``Nullable``/``LowCardinality`` wrappers removed."""
    parsed = parse_type(tag)
    if parsed.args is None:
        return parsed.name
    return f"{parsed.name}({parsed.args})"


def column_kind(tag: str | None) -> ColumnKind:
    """Map a ClickHouse type tag to the kind of Python value it holds."""
    if not tag:
        return ColumnKind.ANY
    name = parse_type(tag).name
    if _NUMERIC_RE.match(name):
        return ColumnKind.NUMBER
    if _DATE_RE.match(name):
        return ColumnKind.DATE
    if _STRING_RE.match(name):
        return ColumnKind.STRING
    if name == "Bool":
        return ColumnKind.BOOLEAN
    if name == "Array":
        return ColumnKind.ARRAY
    if name == "Map":
        return ColumnKind.MAP
    return ColumnKind.ANY


def is_qualified(column: str) -> bool:
    """True for ``table.column`` references."""
    return "." in column


def split_qualified(column: str) -> tuple[str | None, str]:
    """Split ``table.column`` into ``("table", "column")``; bare names get ``None``."""
    if not is_qualified(column):
        return None, column
    table, _, name = column.rpartition(".")
    return table, name


class DatabaseSchema(ConfigBaseModel):
    """Immutable mapping of table name to column name to type tag.

    Accepts either ``{"tables": {...}}`` or the bare table mapping on input.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    tables: dict[str, dict[str, str]]

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_mapping(cls, data: Any) -> Any:
        if isinstance(data, dict) and "tables" not in data:
            return {"tables": data}
        return data

    @property
    def table_names(self) -> list[str]:
        return list(self.tables)

    def has_table(self, table: str) -> bool:
        return table in self.tables

    def columns(self, table: str) -> dict[str, str]:
        """Column name to type tag for ``table`` (a copy).

        Raises:
            TableNotFoundError: If the table is not defined
        """
        if table not in self.tables:
            raise TableNotFoundError(table, self.table_names)
        return dict(self.tables[table])

    def column_type(self, table: str, column: str) -> str | None:
        """Type tag of ``table.column``, or None when either is unknown."""
        return self.tables.get(table, {}).get(column)

    def all_columns(self) -> list[str]:
        """Every column name across all tables, in declaration order, without duplicates."""
        seen: dict[str, None] = {}
        for cols in self.tables.values():
            for name in cols:
                seen.setdefault(name, None)
        return list(seen)

    def find_column_type(self, column: str) -> str:
        """Type tag of the first table (in declaration order) defining ``column``.

        Raises:
            ColumnNotFoundError: If no table defines the column
        """
        for cols in self.tables.values():
            if column in cols:
                return cols[column]
        raise ColumnNotFoundError(column, self.all_columns())

    def resolve(self, table: str, column: str) -> str | None:
        """Type tag for a possibly qualified column as seen from ``table``.

        Qualified references are looked up in their own table; bare names in
        ``table``. Returns None for unknown tables or columns.
        """
        owner, name = split_qualified(column)
        return self.column_type(owner or table, name)

    def require_column(self, table: str, column: str) -> str:
        """Type tag of ``table.column``.

        Raises:
            TableNotFoundError: If the table is not defined
            ColumnNotFoundError: If the table does not define the column
        """
        cols = self.columns(table)
        if column not in cols:
            raise ColumnNotFoundError(column, list(cols))
        return cols[column]
