from .onto import ClickHouseConfig

__all__ = [
    "ClickHouseConfig",
]
