"""Tests for outcome envelopes shared by server and client."""

from datetime import datetime, timezone

import pytest

from draft_sync.errors import PayloadTooLargeError, StorageError
from draft_sync.outcomes import Conflict, NoOp, RateLimited, Written, outcome_from_dict, to_iso

WHEN = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


def test_written_envelope():
    assert Written(2, "ab" * 32, WHEN).to_dict() == {
        "ok": True,
        "noop": False,
        "version": 2,
        "contentHash": "ab" * 32,
        "updatedAt": "2026-10-19T12:30:00+00:00",
    }


@pytest.mark.parametrize(
    "outcome",
    [
        Written(2, "ab" * 32, WHEN),
        NoOp(2, "ab" * 32, WHEN),
        Conflict(7, WHEN),
        RateLimited(30),
    ],
)
def test_envelopes_decode_to_same_outcome(outcome):
    decoded = outcome_from_dict(outcome.to_dict())
    assert type(decoded) is type(outcome)
    assert decoded == outcome


def test_error_envelope_is_not_an_outcome():
    with pytest.raises(ValueError):
        outcome_from_dict(StorageError("Failed to update draft").to_dict())


def test_naive_timestamps_are_treated_as_utc():
    assert to_iso(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05+00:00"


def test_error_envelope_shape():
    error = PayloadTooLargeError("Too big", details={"size": 600000})
    assert error.to_dict() == {
        "ok": False,
        "code": "PAYLOAD_TOO_LARGE",
        "error": "Too big",
        "details": {"size": 600000},
    }
    assert error.status_code == 400
