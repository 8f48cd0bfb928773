"""ClickHouse connection configuration.

Values come from keyword arguments, a YAML file, or ``CLICKHOUSE_*``
environment variables. ``from_env`` reads a qualified set of variables so
several servers can be configured side by side:

    - prefix:  ``USER_CLICKHOUSE_HOST``
    - profile: ``CLICKHOUSE_DEV_HOST``
    - suffix:  ``CLICKHOUSE_HOST_DEV``
"""

from __future__ import annotations

import logging
import os
from typing import Any, Self

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLICKHOUSE_"


class ClickHouseConfig(BaseSettings):
    """Connection parameters for a ClickHouse server.

    Attributes:
        host: Server hostname
        port: HTTP(S) port; the client default is used when unset
        username: Account name
        password: Account password
        database: Default database for unqualified table names
        secure: Use HTTPS
        settings: Session-level ClickHouse settings sent with every query
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "localhost"
    port: int | None = None
    username: str = "default"
    password: str = ""
    database: str = "default"
    secure: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_env(
        cls,
        prefix: str | None = None,
        profile: str | None = None,
        suffix: str | None = None,
    ) -> Self:
        """Load from environment variables, optionally qualified.

        Args:
            prefix: Read ``{prefix}_CLICKHOUSE_*``
            profile: Read ``CLICKHOUSE_{profile}_*``
            suffix: Read ``CLICKHOUSE_*_{suffix}``

        Raises:
            ValueError: If more than one qualifier is given
        """
        if sum(q is not None for q in (prefix, profile, suffix)) > 1:
            raise ValueError("At most one of prefix, profile, suffix may be set")
        if prefix is not None:
            return cls(_env_prefix=f"{prefix.upper()}_{ENV_PREFIX}")
        if profile is not None:
            return cls(_env_prefix=f"{ENV_PREFIX}{profile.upper()}_")
        if suffix is not None:
            values = {}
            for name in cls.model_fields:
                key = f"{ENV_PREFIX}{name.upper()}_{suffix.upper()}"
                if key in os.environ:
                    values[name] = os.environ[key]
            return cls(**values)
        return cls()

    @classmethod
    def from_yaml(cls, path: str) -> Self:
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``clickhouse_connect.get_client``."""
        kwargs: dict[str, Any] = {
            "host": self.host,
            "username": self.username,
            "password": self.password,
            "database": self.database,
            "secure": self.secure,
        }
        if self.port is not None:
            kwargs["port"] = self.port
        if self.settings:
            kwargs["settings"] = dict(self.settings)
        return kwargs

    def __repr__(self) -> str:
        return (
            f"ClickHouseConfig(host={self.host!r}, port={self.port!r}, "
            f"username={self.username!r}, database={self.database!r}, "
            f"secure={self.secure!r})"
        )
