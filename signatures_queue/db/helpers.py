from __future__ import annotations

import re

from sqlalchemy import Table

from .schema import metadata

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, identifier_type: str = "identifier", max_length: int = 64) -> str:
    """
    Validate a table, column or queue name.

    Restricted to letters, digits and underscores so the same name is safe as
    a SQL identifier, a queue table key and a Redis stream key.

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is too long

    Example:
        >>> _validate_identifier("validations_queue", "queue name")
        'validations_queue'
        >>> _validate_identifier("'; DROP TABLE--", "table")
        ValueError: Invalid table '; DROP TABLE--': ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER_RE.match(name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > max_length:
        raise ValueError(f"{identifier_type} {name!r} exceeds the {max_length}-character limit")

    return name


def resolve_table(table: str | Table) -> Table:
    """Map a table name onto its static definition."""
    if isinstance(table, Table):
        return table
    name = _validate_identifier(table, "table")
    try:
        return metadata.tables[name]
    except KeyError:
        raise ValueError(f"Unknown table {name!r}") from None


def resolve_column(table: Table, column: str):
    name = _validate_identifier(column, "column")
    try:
        return table.c[name]
    except KeyError:
        raise ValueError(f"Table {table.name!r} has no column {name!r}") from None
