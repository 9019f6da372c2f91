"""
Typed queue payloads.

Each queue carries exactly one record shape. Payloads are parsed into one of
the dataclasses below; anything that does not fit (unknown field, missing
required field, value that cannot be coerced) raises RecordValidationError
instead of being silently trimmed.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, fields
from typing import Any, ClassVar, Mapping, Optional, Union

from .errors import RecordValidationError

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def coerce_flag(name: str, value: Any) -> int:
    """Normalize a boolean-ish flag (True, "1", "false", 0, ...) to 0 or 1."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        if value in (0, 1):
            return value
        raise RecordValidationError(f"{name} must be 0 or 1, got {value!r}")
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return 1
        if lowered in _FALSE_STRINGS:
            return 0
    raise RecordValidationError(f"{name} is not a boolean flag: {value!r}")


def coerce_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise RecordValidationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise RecordValidationError(f"{name} must be an integer, got {value!r}")


def coerce_str(name: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise RecordValidationError(f"{name} must be a string, got {value!r}")


_COERCERS = {
    "flag": coerce_flag,
    "int": coerce_int,
    "str": coerce_str,
}


@dataclass(frozen=True)
class _Record:
    # field name -> coercer key; subclasses fill these in
    FIELD_TYPES: ClassVar[dict[str, str]] = {}
    REQUIRED: ClassVar[frozenset[str]] = frozenset()
    # set by the worker just before insert
    PREPROCESSED_FIELD: ClassVar[str] = ""
    kind: ClassVar[str] = ""

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]):
        if not data:
            raise RecordValidationError(f"empty payload for {cls.kind}")
        if not isinstance(data, Mapping):
            raise RecordValidationError(
                f"{cls.kind} payload must be a mapping, got {type(data).__name__}"
            )

        unknown = sorted(set(data) - set(cls.FIELD_TYPES))
        if unknown:
            raise RecordValidationError(f"unknown fields for {cls.kind}: {', '.join(unknown)}")

        missing = sorted(name for name in cls.REQUIRED if data.get(name) in (None, ""))
        if missing:
            raise RecordValidationError(f"missing required fields for {cls.kind}: {', '.join(missing)}")

        values: dict[str, Any] = {}
        for name, type_key in cls.FIELD_TYPES.items():
            raw = data.get(name)
            if raw is None:
                continue
            values[name] = _COERCERS[type_key](name, raw)
        return cls(**values)

    def stamped(self, now: Optional[int] = None):
        """Return a copy with the preprocess timestamp set."""
        stamp = int(time.time()) if now is None else now
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values[self.PREPROCESSED_FIELD] = stamp
        return type(self)(**values)

    def to_row(self) -> dict[str, Any]:
        """Column -> value, omitting fields that were never set."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class PendingSignatureRecord(_Record):
    FIELD_TYPES: ClassVar[dict[str, str]] = {
        "secret_validation_key": "str",
        "signature_source_api_key": "str",
        "petition_id": "str",
        "first_name": "str",
        "last_name": "str",
        "zip": "str",
        "email": "str",
        "signup": "flag",
        "timestamp_petition_close": "int",
        "timestamp_validation_close": "int",
        "timestamp_received_new_signature": "int",
        "timestamp_initiated_signature_validation": "int",
        "timestamp_preprocessed_signature": "int",
    }
    REQUIRED: ClassVar[frozenset[str]] = frozenset({"secret_validation_key", "petition_id"})
    PREPROCESSED_FIELD: ClassVar[str] = "timestamp_preprocessed_signature"
    kind: ClassVar[str] = "pending_signature"

    secret_validation_key: str = ""
    petition_id: str = ""
    signature_source_api_key: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    zip: Optional[str] = None
    email: Optional[str] = None
    signup: Optional[int] = None
    timestamp_petition_close: Optional[int] = None
    timestamp_validation_close: Optional[int] = None
    timestamp_received_new_signature: Optional[int] = None
    timestamp_initiated_signature_validation: Optional[int] = None
    timestamp_preprocessed_signature: Optional[int] = None


@dataclass(frozen=True)
class ValidationRecord(_Record):
    FIELD_TYPES: ClassVar[dict[str, str]] = {
        "secret_validation_key": "str",
        "timestamp_validated": "int",
        "timestamp_validation_close": "int",
        "timestamp_received_signature_validation": "int",
        "client_ip": "str",
        "petition_id": "str",
        "timestamp_preprocessed_validation": "int",
    }
    REQUIRED: ClassVar[frozenset[str]] = frozenset({"secret_validation_key"})
    PREPROCESSED_FIELD: ClassVar[str] = "timestamp_preprocessed_validation"
    kind: ClassVar[str] = "validation"

    secret_validation_key: str = ""
    timestamp_validated: Optional[int] = None
    timestamp_validation_close: Optional[int] = None
    timestamp_received_signature_validation: Optional[int] = None
    client_ip: Optional[str] = None
    petition_id: Optional[str] = None
    timestamp_preprocessed_validation: Optional[int] = None


TargetRecord = Union[PendingSignatureRecord, ValidationRecord]
