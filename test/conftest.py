import re
from typing import Any

import pytest
import yaml

from hypequery import DatabaseSchema, create_query_builder
from hypequery.db.clickhouse.conn import ClickHouseConnection

SCHEMA_YAML = """
test_table:
    id: Int32
    name: String
    price: Float64
    created_at: Date
    category: String
    active: UInt8
    created_by: Int32
    updated_by: Int32
    status: String
    brand: String
    total: Int32
    priority: String
    is_premium: Bool
    metadata: Map(String, String)
    tags: Array(String)
    optional_name: Nullable(String)
    categories: Array(LowCardinality(String))
    created_timestamp: DateTime64(9)
users:
    id: Int32
    user_name: String
    email: String
    created_at: Date
    roles: Array(LowCardinality(String))
    is_active: Bool
"""


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]]):
        self.rows = rows

    def named_results(self):
        for row in self.rows:
            yield dict(row)


class FakeSource:
    def __init__(self, column_names):
        self.column_names = column_names


class FakeStream:
    """Mimics the StreamContext returned by ``query_row_block_stream``."""

    def __init__(self, column_names, blocks):
        self.source = FakeSource(column_names)
        self._blocks = blocks
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True

    def __iter__(self):
        return iter(self._blocks)


class FakeClient:
    """Records queries and answers them from canned rows."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.queries: list[str] = []
        self.block_size = 2

    def query(self, sql, settings=None):
        self.queries.append(sql)
        if self.error is not None:
            raise self.error
        return FakeResult(self.rows)

    def query_row_block_stream(self, sql, settings=None):
        self.queries.append(sql)
        if self.error is not None:
            raise self.error
        names = list(self.rows[0]) if self.rows else []
        tuples = [tuple(r[n] for n in names) for r in self.rows]
        blocks = [
            tuples[i : i + self.block_size]
            for i in range(0, len(tuples), self.block_size)
        ]
        return FakeStream(names, blocks)


class PagingClient(FakeClient):
    """Answers ``id``-keyset queries the way the server would."""

    def query(self, sql, settings=None):
        self.queries.append(sql)
        rows = list(self.rows)
        m = re.search(r"WHERE id (>|<) (-?\d+)", sql)
        if m:
            bound = int(m.group(2))
            if m.group(1) == ">":
                rows = [r for r in rows if r["id"] > bound]
            else:
                rows = [r for r in rows if r["id"] < bound]
        m = re.search(r"ORDER BY id (ASC|DESC)", sql)
        if m:
            rows.sort(key=lambda r: r["id"], reverse=m.group(1) == "DESC")
        m = re.search(r"LIMIT (\d+)", sql)
        if m:
            rows = rows[: int(m.group(1))]
        return FakeResult(rows)


@pytest.fixture(autouse=True)
def reset_connection():
    ClickHouseConnection.reset()
    yield
    ClickHouseConnection.reset()


@pytest.fixture()
def schema_dict():
    return yaml.safe_load(SCHEMA_YAML)


@pytest.fixture()
def schema(schema_dict):
    return DatabaseSchema.from_dict(schema_dict)


@pytest.fixture()
def fake_client():
    return FakeClient()


@pytest.fixture()
def db(schema, fake_client):
    return create_query_builder(schema=schema, client=fake_client)


@pytest.fixture()
def builder(db):
    return db.table("test_table")


@pytest.fixture()
def paging_client():
    return PagingClient([{"id": i, "name": f"item{i}"} for i in range(1, 11)])


@pytest.fixture()
def paged(schema, paging_client):
    db = create_query_builder(schema=schema, client=paging_client)
    return db.table("test_table").select(["id", "name"])
