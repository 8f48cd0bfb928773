from .conn import ClickHouseConnection

__all__ = [
    "ClickHouseConnection",
]
