from __future__ import annotations

import pytest

from signatures_queue.errors import RecordValidationError
from signatures_queue.records import (
    PendingSignatureRecord,
    ValidationRecord,
    coerce_flag,
    coerce_int,
)


def _signature(**overrides):
    payload = {
        "secret_validation_key": "abc123",
        "signature_source_api_key": "api-key",
        "petition_id": "p-1",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "zip": "02139",
        "email": "ada@example.com",
        "signup": "1",
        "timestamp_petition_close": "1700003600",
        "timestamp_validation_close": 1700007200,
        "timestamp_received_new_signature": 1700000000,
        "timestamp_initiated_signature_validation": 1700000010,
    }
    payload.update(overrides)
    return payload


class TestCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [(True, 1), (False, 0), ("1", 1), ("0", 0), ("true", 1), ("False", 0), ("", 0), (1, 1), (0, 0)],
    )
    def test_flag_values(self, value, expected) -> None:
        assert coerce_flag("signup", value) == expected

    @pytest.mark.parametrize("value", [2, "maybe", None, 1.5])
    def test_flag_rejects_non_boolean(self, value) -> None:
        with pytest.raises(RecordValidationError):
            coerce_flag("signup", value)

    def test_int_accepts_numeric_strings(self) -> None:
        assert coerce_int("ts", " 42 ") == 42
        assert coerce_int("ts", 42.0) == 42

    @pytest.mark.parametrize("value", ["soon", True, 1.5, []])
    def test_int_rejects_other_values(self, value) -> None:
        with pytest.raises(RecordValidationError):
            coerce_int("ts", value)


class TestPendingSignatureRecord:
    def test_parses_and_coerces_fields(self) -> None:
        record = PendingSignatureRecord.from_payload(_signature())

        assert record.signup == 1
        assert record.timestamp_petition_close == 1700003600
        assert record.zip == "02139"
        assert record.timestamp_preprocessed_signature is None

    def test_boolean_signup_is_normalized(self) -> None:
        assert PendingSignatureRecord.from_payload(_signature(signup=False)).signup == 0

    def test_stamped_sets_preprocess_timestamp_only(self) -> None:
        record = PendingSignatureRecord.from_payload(_signature())
        stamped = record.stamped(now=1700000500)

        assert stamped.timestamp_preprocessed_signature == 1700000500
        assert stamped.secret_validation_key == record.secret_validation_key
        assert record.timestamp_preprocessed_signature is None

    def test_to_row_omits_unset_fields(self) -> None:
        record = PendingSignatureRecord.from_payload(
            {"secret_validation_key": "k", "petition_id": "p", "signup": True}
        )
        assert record.to_row() == {"secret_validation_key": "k", "petition_id": "p", "signup": 1}

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(RecordValidationError, match="unknown fields for pending_signature: nickname"):
            PendingSignatureRecord.from_payload(_signature(nickname="ada"))

    def test_rejects_missing_required_fields(self) -> None:
        payload = _signature()
        del payload["petition_id"]
        with pytest.raises(RecordValidationError, match="missing required fields"):
            PendingSignatureRecord.from_payload(payload)

    @pytest.mark.parametrize("payload", [None, {}, [1, 2], "text"])
    def test_rejects_empty_or_non_mapping(self, payload) -> None:
        with pytest.raises(RecordValidationError):
            PendingSignatureRecord.from_payload(payload)


class TestValidationRecord:
    def test_parses_minimal_payload(self) -> None:
        record = ValidationRecord.from_payload({"secret_validation_key": "X"})
        assert record.to_row() == {"secret_validation_key": "X"}

    def test_signature_fields_are_not_accepted(self) -> None:
        with pytest.raises(RecordValidationError, match="signup"):
            ValidationRecord.from_payload({"secret_validation_key": "X", "signup": "1"})

    def test_bad_timestamp_is_rejected(self) -> None:
        with pytest.raises(RecordValidationError, match="timestamp_validated"):
            ValidationRecord.from_payload({"secret_validation_key": "X", "timestamp_validated": "later"})
