from datetime import date

import pytest

from hypequery.exceptions import (
    ColumnNotFoundError,
    UnsupportedOperatorError,
    ValidationError,
)


def test_like_escapes_quotes(builder):
    q = builder.where("name", "like", "%O'Brien%")
    assert q.to_sql() == "SELECT * FROM test_table WHERE name LIKE '%O''Brien%'"


def test_or_where(builder):
    q = builder.where("category", "eq", "electronics").or_where("price", "gt", 1000)
    assert q.to_sql() == (
        "SELECT * FROM test_table WHERE category = 'electronics' OR price > 1000"
    )


def test_or_where_in(builder):
    q = builder.where("price", "lt", 10).or_where("category", "in", ["electronics", "books"])
    assert q.to_sql() == (
        "SELECT * FROM test_table WHERE price < 10 "
        "OR category IN ('electronics', 'books')"
    )


def test_where_group(builder):
    q = builder.where_group(
        lambda b: b.where("price", "gte", 100).or_where("category", "eq", "premium")
    )
    assert q.to_sql() == (
        "SELECT * FROM test_table WHERE (price >= 100 OR category = 'premium')"
    )


def test_or_where_group(builder):
    q = builder.where("active", "eq", 1).or_where_group(
        lambda b: b.where("brand", "eq", "A").where("total", "gt", 5)
    )
    assert q.to_sql() == (
        "SELECT * FROM test_table WHERE active = 1 OR (brand = 'A' AND total > 5)"
    )


def test_where_group_callback_must_return_builder(builder):
    with pytest.raises(ValidationError):
        builder.where_group(lambda b: None)


def test_where_with_limit(builder):
    assert builder.where("id", "gt", 1).limit(10).to_sql() == (
        "SELECT * FROM test_table WHERE id > 1 LIMIT 10"
    )


def test_parameters_follow_placeholders(builder):
    q = (
        builder.where("price", "gt", 100)
        .where("category", "in", ("a", "b"))
        .where("optional_name", "isNotNull")
    )
    assert q.to_sql_with_params() == (
        "SELECT * FROM test_table WHERE price > ? AND category IN (?, ?) "
        "AND optional_name IS NOT NULL",
        [100, "a", "b"],
    )


def test_between_and_dates(builder):
    q = builder.where("created_at", "between", [date(2024, 1, 1), "2024-12-31"])
    assert q.to_sql() == (
        "SELECT * FROM test_table WHERE created_at BETWEEN '2024-01-01' AND '2024-12-31'"
    )


def test_where_between(builder):
    assert builder.where_between("price", (10, 20)).to_sql() == (
        "SELECT * FROM test_table WHERE price BETWEEN 10 AND 20"
    )
    with pytest.raises(ValidationError):
        builder.where_between("price", (10, None))
    with pytest.raises(ValidationError):
        builder.where_between("price", (1, 2, 3))


def test_null_checks(builder):
    assert builder.where("optional_name", "isNull").to_sql() == (
        "SELECT * FROM test_table WHERE optional_name IS NULL"
    )


def test_empty_in_lists(builder):
    assert builder.where("id", "in", []).to_sql() == "SELECT * FROM test_table WHERE 1 = 0"
    assert builder.where("id", "notIn", []).to_sql() == (
        "SELECT * FROM test_table WHERE 1 = 1"
    )


def test_boolean_values(builder):
    assert builder.where("is_premium", "eq", True).to_sql() == (
        "SELECT * FROM test_table WHERE is_premium = true"
    )


def test_unknown_column(builder):
    with pytest.raises(ColumnNotFoundError, match="Column 'region' not found in schema"):
        builder.where("region", "eq", "North")


def test_unsupported_operator(builder):
    with pytest.raises(UnsupportedOperatorError):
        builder.where("name", "approx", "x")


def test_null_value_rejected(builder):
    with pytest.raises(
        ValidationError, match="Filter value for column 'name' cannot be null/undefined"
    ):
        builder.where("name", "eq", None)


@pytest.mark.parametrize(
    "column, operator, value, message",
    [
        ("price", "gt", "abc", "Invalid numeric value for column 'price'"),
        ("name", "eq", 5, "Invalid string value for column 'name'"),
        ("created_at", "eq", 20240101, "Invalid date value for column 'created_at'"),
        ("is_premium", "eq", "yes", "Invalid boolean value for column 'is_premium'"),
        ("id", "in", 1, "requires an array value"),
        ("id", "between", [1, 2, 3], "exactly two values"),
        ("name", "like", 5, "requires a string pattern"),
        ("id", "eq", [1, 2], "requires a single value"),
    ],
)
def test_value_validation(builder, column, operator, value, message):
    with pytest.raises(ValidationError, match=message):
        builder.where(column, operator, value)


def test_failed_validation_leaves_builder_untouched(builder):
    q = builder.where("price", "gt", 1)
    with pytest.raises(ValidationError):
        q.where("price", "gt", "x")
    assert q.to_sql() == "SELECT * FROM test_table WHERE price > 1"


def test_alias_filter_after_aggregate(builder):
    q = builder.select(["brand"]).sum("total").where("total_sum", "gt", 10)
    assert "WHERE total_sum > 10" in q.to_sql()
