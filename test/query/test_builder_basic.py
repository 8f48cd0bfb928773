import pytest

from hypequery import ColumnKind, QueryBuilder
from hypequery.exceptions import TableNotFoundError, ValidationError


def test_select_all(builder):
    assert builder.to_sql() == "SELECT * FROM test_table"


def test_select_columns(builder):
    q = builder.select(["id", "name"]).where("price", "gt", 100)
    assert q.to_sql() == "SELECT id, name FROM test_table WHERE price > 100"


def test_select_single_string(builder):
    assert builder.select("name").to_sql() == "SELECT name FROM test_table"


def test_distinct(builder):
    assert builder.select(["name"]).distinct().to_sql() == (
        "SELECT DISTINCT name FROM test_table"
    )


def test_builders_are_immutable(builder):
    filtered = builder.where("price", "gt", 100)
    limited = filtered.limit(5)
    assert builder.to_sql() == "SELECT * FROM test_table"
    assert filtered.to_sql() == "SELECT * FROM test_table WHERE price > 100"
    assert limited.to_sql() == "SELECT * FROM test_table WHERE price > 100 LIMIT 5"


def test_config_is_a_copy(builder):
    q = builder.where("price", "gt", 100)
    config = q.config
    config.where.clear()
    assert q.to_sql() == "SELECT * FROM test_table WHERE price > 100"


def test_sum(builder):
    assert builder.sum("price").to_sql() == "SELECT SUM(price) AS price_sum FROM test_table"


def test_aggregates_group_by_selected_columns(builder):
    q = builder.select(["name"]).sum("price").count("id")
    assert q.to_sql() == (
        "SELECT name, SUM(price) AS price_sum, COUNT(id) AS id_count "
        "FROM test_table GROUP BY name"
    )


def test_aggregate_aliases(builder):
    assert builder.avg("price", "avg_price").to_sql() == (
        "SELECT AVG(price) AS avg_price FROM test_table"
    )
    assert builder.min("price").max("total").to_sql() == (
        "SELECT MIN(price) AS price_min, MAX(total) AS total_max FROM test_table"
    )


def test_having(builder):
    q = builder.avg("price", "avg_price").having("avg_price > 10")
    assert q.to_sql() == "SELECT AVG(price) AS avg_price FROM test_table HAVING avg_price > 10"


def test_having_parameters(builder):
    q = (
        builder.select(["brand"])
        .sum("total")
        .having("total_sum > ?", [500])
        .having("COUNT(*) < ?", [3])
    )
    sql, params = q.to_sql_with_params()
    assert sql == (
        "SELECT brand, SUM(total) AS total_sum FROM test_table GROUP BY brand "
        "HAVING total_sum > ? AND COUNT(*) < ?"
    )
    assert params == [500, 3]
    assert q.to_sql().endswith("HAVING total_sum > 500 AND COUNT(*) < 3")


def test_order_by(builder):
    q = builder.select(["name", "price"]).order_by("price", "DESC").order_by("name")
    assert q.to_sql() == "SELECT name, price FROM test_table ORDER BY price DESC, name ASC"


def test_order_by_lowercase_direction(builder):
    assert builder.order_by("price", "desc").to_sql() == (
        "SELECT * FROM test_table ORDER BY price DESC"
    )


def test_order_by_invalid_direction(builder):
    with pytest.raises(ValidationError):
        builder.order_by("price", "sideways")


def test_limit_offset(builder):
    assert builder.limit(10).offset(20).to_sql() == (
        "SELECT * FROM test_table LIMIT 10 OFFSET 20"
    )


def test_limit_zero_is_rendered(builder):
    assert builder.limit(0).to_sql() == "SELECT * FROM test_table LIMIT 0"
    assert builder.limit(0).offset(5).to_sql() == "SELECT * FROM test_table LIMIT 0 OFFSET 5"
    assert builder.offset(5).to_sql() == "SELECT * FROM test_table"


@pytest.mark.parametrize("bad", [-1, 1.5, "10", True])
def test_limit_rejects_bad_values(builder, bad):
    with pytest.raises(ValidationError):
        builder.limit(bad)
    with pytest.raises(ValidationError):
        builder.offset(bad)


def test_group_by_replaces(builder):
    q = builder.select(["brand", "category"]).group_by("brand").group_by(["category"])
    assert q.to_sql() == "SELECT brand, category FROM test_table GROUP BY category"


def test_row_descriptor(builder):
    assert builder.columns["price"] == ColumnKind.NUMBER
    assert builder.columns["tags"] == ColumnKind.ARRAY
    narrowed = builder.select(["id", "name", "is_premium"])
    assert narrowed.columns == {
        "id": ColumnKind.NUMBER,
        "name": ColumnKind.STRING,
        "is_premium": ColumnKind.BOOLEAN,
    }
    assert narrowed.row_type == narrowed.columns


def test_row_descriptor_with_aggregates(builder):
    assert builder.sum("price").columns == {"price_sum": ColumnKind.NUMBER}
    grouped = builder.select(["brand"]).count("id")
    assert grouped.columns == {
        "brand": ColumnKind.STRING,
        "id_count": ColumnKind.NUMBER,
    }


def test_select_star_expands_descriptor(builder):
    assert builder.select(["*"]).columns == builder.columns


def test_unknown_table(db):
    with pytest.raises(TableNotFoundError):
        db.table("orders")


def test_builder_without_schema_skips_validation():
    q = QueryBuilder("events").select(["anything"]).where("whatever", "eq", 1)
    assert q.to_sql() == "SELECT anything FROM events WHERE whatever = 1"
    assert q.columns == {"anything": ColumnKind.ANY}


def test_repr(builder):
    assert repr(builder.limit(1)) == "QueryBuilder('test_table', 'SELECT * FROM test_table LIMIT 1')"
