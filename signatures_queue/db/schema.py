"""
Static table definitions for the signatures-processing database.

Destination columns are declared here rather than discovered at runtime.
Bump SCHEMA_VERSION whenever a table or a record mapping changes.
"""
from __future__ import annotations

from dataclasses import dataclass, fields

from sqlalchemy import (
    BigInteger,
    Column,
    Index,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

from ..records import PendingSignatureRecord, ValidationRecord, _Record

SCHEMA_VERSION = 1

SIGNATURES_PENDING_VALIDATION = "signatures_pending_validation"
VALIDATIONS = "validations"
VALIDATIONS_PROCESSED = "validations_processed"
QUEUE = "queue"

metadata = MetaData()

signatures_pending_validation = Table(
    SIGNATURES_PENDING_VALIDATION,
    metadata,
    Column("sid", Integer, primary_key=True, autoincrement=True),
    Column("secret_validation_key", String(255), nullable=False, unique=True),
    Column("signature_source_api_key", String(255), nullable=True),
    Column("petition_id", String(255), nullable=False),
    Column("first_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=True),
    Column("zip", String(255), nullable=True),
    Column("email", String(255), nullable=True),
    Column("signup", SmallInteger, nullable=False, default=0),
    Column("timestamp_petition_close", BigInteger, nullable=True),
    Column("timestamp_validation_close", BigInteger, nullable=True),
    Column("timestamp_received_new_signature", BigInteger, nullable=True),
    Column("timestamp_initiated_signature_validation", BigInteger, nullable=True),
    Column("timestamp_preprocessed_signature", BigInteger, nullable=True),
    Index("ix_spv_petition_id", "petition_id"),
)

validations = Table(
    VALIDATIONS,
    metadata,
    Column("vid", Integer, primary_key=True, autoincrement=True),
    Column("secret_validation_key", String(255), nullable=False, unique=True),
    Column("timestamp_validated", BigInteger, nullable=True),
    Column("timestamp_validation_close", BigInteger, nullable=True),
    Column("timestamp_received_signature_validation", BigInteger, nullable=True),
    Column("client_ip", String(255), nullable=True),
    Column("petition_id", String(255), nullable=True),
    Column("timestamp_preprocessed_validation", BigInteger, nullable=True),
)

validations_processed = Table(
    VALIDATIONS_PROCESSED,
    metadata,
    Column("vid", Integer, primary_key=True, autoincrement=True),
    Column("secret_validation_key", String(255), nullable=False, unique=True),
    Column("timestamp_processed", BigInteger, nullable=True),
)

# Backing table for DatabaseQueue. expire == 0 means unclaimed.
queue = Table(
    QUEUE,
    metadata,
    Column("item_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("data", Text, nullable=True),
    Column("expire", BigInteger, nullable=False, default=0),
    Column("created", BigInteger, nullable=False, default=0),
    Index("ix_queue_name_created", "name", "created"),
    Index("ix_queue_expire", "expire"),
)


@dataclass(frozen=True)
class TableMapping:
    table: Table
    record_type: type[_Record]

    def validate(self) -> None:
        """Every record field must exist as a column of the destination table."""
        missing = [f.name for f in fields(self.record_type) if f.name not in self.table.c]
        if missing:
            raise ValueError(
                f"schema v{SCHEMA_VERSION}: {self.record_type.__name__} fields "
                f"{missing} have no column in {self.table.name}"
            )


MAPPINGS: dict[str, TableMapping] = {
    SIGNATURES_PENDING_VALIDATION: TableMapping(signatures_pending_validation, PendingSignatureRecord),
    VALIDATIONS: TableMapping(validations, ValidationRecord),
}

for _mapping in MAPPINGS.values():
    _mapping.validate()


def table_columns(table_name: str) -> list[str]:
    """Ordered column names of a known table."""
    try:
        return [c.name for c in metadata.tables[table_name].columns]
    except KeyError:
        raise ValueError(f"Unknown table {table_name!r}") from None


def create_all(engine: Engine) -> None:
    metadata.create_all(engine)
