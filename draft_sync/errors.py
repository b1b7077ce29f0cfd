"""
Error taxonomy for draft synchronization.

Version conflicts and throttling are not errors: they are outcome values
returned by the reconciler (see ``draft_sync.outcomes``). Everything here is
raised and rendered as ``{"ok": false, "code": ..., "error": ...}``.
"""

from typing import Any, Dict, Optional


class DraftSyncError(Exception):
    """
    Base class for draft sync failures.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
        status_code: HTTP status the API renders this error with
        retryable: Whether resending the same request may succeed
    """

    code = "INTERNAL_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        body: Dict[str, Any] = {
            "ok": False,
            "code": self.code,
            "error": self.message,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class PayloadValidationError(DraftSyncError):
    """Malformed request or payload. Fix and resend."""

    code = "VALIDATION_ERROR"
    status_code = 400


class PayloadTooLargeError(PayloadValidationError):
    """Serialized payload exceeds the configured size limit."""

    code = "PAYLOAD_TOO_LARGE"


class AuthError(DraftSyncError):
    """Missing, invalid or expired credentials. Never retried automatically."""

    code = "AUTH_REQUIRED"
    status_code = 401


class StorageError(DraftSyncError):
    """Transient persistence failure. Safe to retry verbatim."""

    code = "STORAGE_ERROR"
    status_code = 500
    retryable = True


class TransportError(DraftSyncError):
    """Client-side network failure talking to the drafts API."""

    code = "NETWORK_ERROR"
    status_code = 503
    retryable = True
