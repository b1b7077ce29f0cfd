"""
Reconciliation outcomes.

Shared by the server (which produces them) and the autosave client (which
consumes them after decoding the HTTP envelope).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render a timestamp as ISO-8601 in UTC.

    SQLite hands back naive datetimes for timezone-aware columns; those are
    stored in UTC, so they are tagged rather than converted.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp produced by ``to_iso``."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Saved:
    """Server acknowledged the payload at ``version``."""

    version: int
    content_hash: str
    updated_at: datetime

    noop = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "noop": self.noop,
            "version": self.version,
            "contentHash": self.content_hash,
            "updatedAt": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class Written(Saved):
    """Content changed and the row now holds ``version``."""


@dataclass(frozen=True)
class NoOp(Saved):
    """Normalized content matched the stored row; nothing was written."""

    noop = True


@dataclass(frozen=True)
class Conflict:
    """The caller's ``if_version`` is stale."""

    server_version: int
    server_updated_at: datetime

    code = "VERSION_CONFLICT"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "serverVersion": self.server_version,
            "serverUpdatedAt": to_iso(self.server_updated_at),
        }


@dataclass(frozen=True)
class RateLimited:
    """Write budget exhausted; retry after ``retry_after`` seconds."""

    retry_after: int

    code = "RATE_LIMITED"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "retryAfterSeconds": self.retry_after,
        }


Outcome = Union[Written, NoOp, Conflict, RateLimited]


def outcome_from_dict(body: Dict[str, Any]) -> Outcome:
    """Decode an API response envelope into an outcome.

    Raises:
        ValueError: if the envelope is not a reconciliation outcome
    """
    if body.get("ok") is True:
        cls = NoOp if body.get("noop") else Written
        return cls(
            version=int(body["version"]),
            content_hash=str(body["contentHash"]),
            updated_at=parse_iso(body["updatedAt"]),
        )

    code = body.get("code")
    if code == Conflict.code:
        return Conflict(
            server_version=int(body["serverVersion"]),
            server_updated_at=parse_iso(body["serverUpdatedAt"]),
        )
    if code == RateLimited.code:
        return RateLimited(retry_after=int(body["retryAfterSeconds"]))

    raise ValueError(f"Not a reconciliation outcome: code={code!r}")
