"""ClickHouse connection configuration and the process-wide client holder."""

from .clickhouse import ClickHouseConnection
from .connection import ClickHouseConfig

__all__ = [
    "ClickHouseConfig",
    "ClickHouseConnection",
]
