"""Named, reusable join definitions.

A ``JoinRelationships`` registry maps a name to one ``JoinPath`` or to a
chain of them. Builders created with a registry apply a definition with
``with_relation(name)``.

Example:
    >>> rels = JoinRelationships()
    >>> rels.define(
    ...     "creator",
    ...     JoinPath(from_table="orders", to_table="users",
    ...              left_column="created_by", right_column="id"),
    ... )
    >>> builder.with_relation("creator")
    >>> # ... INNER JOIN users ON created_by = users.id
"""

from __future__ import annotations

import logging

from pydantic import Field

from hypequery.architecture.base import ConfigBaseModel
from hypequery.onto import JoinType

logger = logging.getLogger(__name__)


class JoinPath(ConfigBaseModel):
    """One join step.

    ``right_column`` is a bare column name of ``to_table``.
    """

    from_table: str = Field(alias="from")
    to_table: str = Field(alias="to")
    left_column: str
    right_column: str
    type: JoinType | None = None
    alias: str | None = None


class JoinRelationships:
    """Registry of join paths and join chains by name."""

    def __init__(self):
        self._paths: dict[str, JoinPath | list[JoinPath]] = {}

    def define(self, name: str, path: JoinPath | dict) -> None:
        if name in self._paths:
            raise ValueError(f"Join relationship '{name}' is already defined")
        self._paths[name] = path if isinstance(path, JoinPath) else JoinPath.from_dict(path)

    def define_chain(self, name: str, paths: list[JoinPath | dict]) -> None:
        if name in self._paths:
            raise ValueError(f"Join chain '{name}' is already defined")
        if not paths:
            raise ValueError("Join chain must contain at least one path")
        self._paths[name] = [
            p if isinstance(p, JoinPath) else JoinPath.from_dict(p) for p in paths
        ]

    def get(self, name: str) -> JoinPath | list[JoinPath] | None:
        return self._paths.get(name)

    def has(self, name: str) -> bool:
        return name in self._paths

    def remove(self, name: str) -> bool:
        return self._paths.pop(name, None) is not None

    def clear(self) -> None:
        self._paths.clear()

    def names(self) -> list[str]:
        return list(self._paths)
