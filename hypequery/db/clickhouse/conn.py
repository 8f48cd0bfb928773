"""Process-wide ClickHouse client holder.

``ClickHouseConnection`` keeps one client per process. It is initialized once
(usually by ``create_query_builder``) and read by every executing builder.
Any object with the ``clickhouse_connect`` client interface (``query`` and
``query_row_block_stream``) can be injected instead of a real client.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import clickhouse_connect

from hypequery.db.connection.onto import ClickHouseConfig
from hypequery.exceptions import ConnectionNotInitializedError

logger = logging.getLogger(__name__)


class ClickHouseConnection:
    """Class-level singleton around a ClickHouse client."""

    _client: ClassVar[Any | None] = None
    _config: ClassVar[ClickHouseConfig | None] = None

    @classmethod
    def initialize(
        cls,
        config: ClickHouseConfig | dict[str, Any] | None = None,
        client: Any | None = None,
    ) -> Any:
        """Store ``client``, or create one from ``config``.

        Re-initializing replaces the previous client.

        Returns:
            The active client
        """
        if isinstance(config, dict):
            config = ClickHouseConfig(**config)
        if client is None:
            config = config or ClickHouseConfig()
            logger.info(
                f"Connecting to ClickHouse at {config.host}"
                f"{':' + str(config.port) if config.port else ''}/{config.database}"
            )
            client = clickhouse_connect.get_client(**config.client_kwargs())
        cls._config = config
        cls._client = client
        return client

    @classmethod
    def get_client(cls) -> Any:
        """Raises ConnectionNotInitializedError before ``initialize``."""
        if cls._client is None:
            raise ConnectionNotInitializedError(
                "ClickHouse connection not initialized. Call initialize() first."
            )
        return cls._client

    @classmethod
    def get_config(cls) -> ClickHouseConfig | None:
        return cls._config

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None

    @classmethod
    def reset(cls) -> None:
        """Drop the stored client (it is not closed)."""
        cls._client = None
        cls._config = None
