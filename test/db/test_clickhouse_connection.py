import pytest

from hypequery import DatabaseSchema, create_query_builder
from hypequery.db.clickhouse import conn
from hypequery.db.clickhouse.conn import ClickHouseConnection
from hypequery.db.connection.onto import ClickHouseConfig
from hypequery.exceptions import ConnectionNotInitializedError


def test_get_client_before_initialize():
    assert not ClickHouseConnection.is_initialized()
    with pytest.raises(
        ConnectionNotInitializedError,
        match=r"ClickHouse connection not initialized\. Call initialize\(\) first\.",
    ):
        ClickHouseConnection.get_client()


def test_initialize_with_client(fake_client):
    assert ClickHouseConnection.initialize(client=fake_client) is fake_client
    assert ClickHouseConnection.get_client() is fake_client
    assert ClickHouseConnection.is_initialized()
    ClickHouseConnection.reset()
    assert not ClickHouseConnection.is_initialized()


def test_initialize_creates_client(monkeypatch):
    calls = []

    def get_client(**kwargs):
        calls.append(kwargs)
        return "client"

    monkeypatch.setattr(conn.clickhouse_connect, "get_client", get_client)
    client = ClickHouseConnection.initialize({"host": "ch", "port": 8123})

    assert client == "client"
    assert calls == [
        {
            "host": "ch",
            "port": 8123,
            "username": "default",
            "password": "",
            "database": "default",
            "secure": False,
        }
    ]
    assert isinstance(ClickHouseConnection.get_config(), ClickHouseConfig)
    assert ClickHouseConnection.get_config().host == "ch"


def test_reinitialize_replaces_client(fake_client):
    ClickHouseConnection.initialize(client=object())
    ClickHouseConnection.initialize(client=fake_client)
    assert ClickHouseConnection.get_client() is fake_client


def test_create_query_builder_accepts_plain_schema(fake_client, schema_dict):
    db = create_query_builder(schema=schema_dict, client=fake_client)
    assert isinstance(db.schema, DatabaseSchema)
    assert db.table("users").to_sql() == "SELECT * FROM users"
    assert ClickHouseConnection.get_client() is fake_client
