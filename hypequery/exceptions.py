"""Exception hierarchy for query construction, validation and execution.

Validation errors subclass ``ValueError`` so callers that only care about
bad input can catch the builtin; execution errors raised by the ClickHouse
client are never wrapped and propagate unchanged.
"""


class HypequeryError(Exception):
    """Base class for all errors raised by hypequery itself."""


class ValidationError(HypequeryError, ValueError):
    """An operator, value or column failed validation before being stored."""


class ColumnNotFoundError(ValidationError):
    """A column was referenced that the schema does not define."""

    def __init__(self, column: str, valid_columns: list[str]):
        self.column = column
        self.valid_columns = valid_columns
        super().__init__(
            f"Column '{column}' not found in schema. "
            f"Valid columns are: {', '.join(valid_columns)}"
        )


class TableNotFoundError(ValidationError):
    """A table was referenced that the schema does not define."""

    def __init__(self, table: str, valid_tables: list[str]):
        self.table = table
        self.valid_tables = valid_tables
        super().__init__(
            f"Table '{table}' not found in schema. "
            f"Valid tables are: {', '.join(valid_tables)}"
        )


class UnsupportedOperatorError(ValidationError):
    """An operator has no SQL rendering."""

    def __init__(self, operator: object):
        self.operator = operator
        super().__init__(f"Unsupported operator: {operator}")


class CursorDecodeError(HypequeryError, ValueError):
    """A pagination cursor is not valid base64-encoded JSON."""


class ConnectionNotInitializedError(HypequeryError, RuntimeError):
    """The ClickHouse connection was used before ``initialize`` was called."""
