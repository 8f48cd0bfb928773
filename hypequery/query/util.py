"""Value escaping, parameter substitution and result-row coercion."""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from hypequery.architecture.schema import ColumnKind
from hypequery.exceptions import ValidationError
from hypequery.filter.date_range import to_iso

logger = logging.getLogger(__name__)

PLACEHOLDER = "?"

# ---------------------------------------------------------------------------
# Value serialisation
# ---------------------------------------------------------------------------


def escape_string(value: str) -> str:
    """Escape a string for a single-quoted ClickHouse literal."""
    return value.replace("\\", "\\\\").replace("'", "''")


def escape_value(value: Any) -> str:
    """Serialise a Python value into a ClickHouse SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return f"'{escape_string(value)}'"
    if isinstance(value, (datetime, date)):
        return f"'{to_iso(value)}'"
    return f"'{escape_string(json.dumps(value, default=str))}'"


def substitute_parameters(sql: str, parameters: list[Any]) -> str:
    """Replace each ``?`` in ``sql`` with the next escaped parameter.

    Raises:
        ValidationError: If placeholder and parameter counts differ
    """
    pieces = sql.split(PLACEHOLDER)
    if len(pieces) - 1 != len(parameters):
        raise ValidationError(
            f"Query has {len(pieces) - 1} placeholders "
            f"but {len(parameters)} parameters were given"
        )
    out = [pieces[0]]
    for value, piece in zip(parameters, pieces[1:]):
        out.append(escape_value(value))
        out.append(piece)
    return "".join(out)


# ---------------------------------------------------------------------------
# Select-list helpers
# ---------------------------------------------------------------------------


def is_aggregate(entry: str) -> bool:
    """Select entries carrying an alias are computed columns."""
    return " AS " in entry


def output_name(entry: str) -> str:
    """Name under which a select entry appears in result rows.

    ``SUM(price) AS total`` -> ``total``; ``users.name`` -> ``name``.
    """
    if is_aggregate(entry):
        return entry.rsplit(" AS ", 1)[1].strip()
    return entry.rsplit(".", 1)[-1].strip()


# ---------------------------------------------------------------------------
# Result coercion
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"^-?\d+$")


def coerce_value(kind: ColumnKind | str | None, value: Any) -> Any:
    """Convert a raw client value to the Python type its column kind implies.

    ClickHouse returns 64-bit integers and decimals as strings in some
    formats; numbers are normalised to ``int``/``float`` and ``Bool``
    columns reported as 0/1 become ``bool``. Unparseable values pass through.
    """
    if value is None or kind is None:
        return value
    if kind == ColumnKind.NUMBER:
        if isinstance(value, bool):
            return value
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text) if _INT_RE.match(text) else float(text)
            except ValueError:
                return value
        return value
    if kind == ColumnKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        if value in (0, 1, "0", "1"):
            return bool(int(value))
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
    return value


def coerce_row(
    row: Mapping[str, Any], descriptor: Mapping[str, ColumnKind | str]
) -> dict[str, Any]:
    """Coerce every field of ``row`` listed in ``descriptor``; others pass through."""
    return {k: coerce_value(descriptor.get(k), v) for k, v in row.items()}
