from __future__ import annotations

from dataclasses import fields

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table

from signatures_queue.db.schema import (
    MAPPINGS,
    SIGNATURES_PENDING_VALIDATION,
    VALIDATIONS,
    TableMapping,
    table_columns,
)
from signatures_queue.records import PendingSignatureRecord, ValidationRecord


def test_mappings_cover_every_record_field() -> None:
    for mapping in MAPPINGS.values():
        columns = set(table_columns(mapping.table.name))
        for f in fields(mapping.record_type):
            assert f.name in columns


def test_mapping_points_at_expected_record_types() -> None:
    assert MAPPINGS[SIGNATURES_PENDING_VALIDATION].record_type is PendingSignatureRecord
    assert MAPPINGS[VALIDATIONS].record_type is ValidationRecord


def test_table_columns_are_ordered() -> None:
    columns = table_columns(VALIDATIONS)
    assert columns[0] == "vid"
    assert columns[1] == "secret_validation_key"
    assert columns[-1] == "timestamp_preprocessed_validation"


def test_table_columns_unknown_table() -> None:
    with pytest.raises(ValueError, match="Unknown table"):
        table_columns("petitions")


def test_validate_rejects_mapping_with_missing_column() -> None:
    narrow = Table(
        "narrow_validations",
        MetaData(),
        Column("vid", Integer, primary_key=True),
        Column("secret_validation_key", String(255)),
    )
    with pytest.raises(ValueError, match="have no column in narrow_validations"):
        TableMapping(narrow, ValidationRecord).validate()
