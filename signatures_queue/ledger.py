from __future__ import annotations

from .db.schema import VALIDATIONS_PROCESSED
from .db.tx import DbTx


def is_processed(tx: DbTx, secret_key: str) -> bool:
    """True if a validation with this secret key was already fully processed."""
    return tx.exists(VALIDATIONS_PROCESSED, "secret_validation_key", secret_key)
