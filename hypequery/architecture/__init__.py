"""Schema layer: table/column registry and ClickHouse type-tag interpretation.

Key Components:
    - ConfigBaseModel: Pydantic base with YAML I/O
    - DatabaseSchema: Immutable table -> column -> type tag mapping
    - ColumnKind: Python-side value kind of a column type
"""

from .base import ConfigBaseModel
from .schema import ColumnKind, DatabaseSchema, column_kind, parse_type, unwrap_type

__all__ = [
    "ConfigBaseModel",
    "ColumnKind",
    "DatabaseSchema",
    "column_kind",
    "parse_type",
    "unwrap_type",
]
