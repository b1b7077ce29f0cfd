"""
HTTP transport between the autosave scheduler and the drafts API.

Maps response envelopes back to reconciliation outcomes, and HTTP/network
failures to the error taxonomy the scheduler reacts to.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx
import structlog

from ..config import Settings, get_settings
from ..errors import (
    AuthError,
    DraftSyncError,
    PayloadTooLargeError,
    PayloadValidationError,
    StorageError,
    TransportError,
)
from ..outcomes import Outcome, outcome_from_dict

logger = structlog.get_logger(__name__)


class DraftTransport(Protocol):
    """What the scheduler needs from the server."""

    async def save(
        self, draft_key: str, payload: Dict[str, Any], if_version: Optional[int]
    ) -> Outcome:
        ...

    async def fetch(self, draft_key: str) -> Optional[Dict[str, Any]]:
        ...


def _error_from_response(response: httpx.Response) -> DraftSyncError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("error") or response.reason_phrase or "Request failed"
    code = body.get("code")

    if response.status_code == 401:
        return AuthError(message)
    if response.status_code == 400:
        if code == PayloadTooLargeError.code:
            return PayloadTooLargeError(message, details=body.get("details"))
        return PayloadValidationError(message, details=body.get("details"))
    if response.status_code >= 500:
        return StorageError(message)
    return TransportError(f"Unexpected response {response.status_code}: {message}")


class HttpDraftTransport:
    """
    Client for the ``/api/drafts`` endpoints.

    Usage:
        transport = HttpDraftTransport("https://example.com", token)
        outcome = await transport.save(draft_key, payload, if_version=3)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.headers = {"Authorization": f"Bearer {token}"}

    @classmethod
    def from_settings(cls, token: str, settings: Optional[Settings] = None) -> "HttpDraftTransport":
        """Build a transport for the configured drafts API."""
        settings = settings or get_settings()
        return cls(settings.client_base_url, token, timeout=settings.client_timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self.client.aclose()

    async def save(
        self, draft_key: str, payload: Dict[str, Any], if_version: Optional[int]
    ) -> Outcome:
        """POST the payload. Conflicts and throttling come back as outcomes."""
        body: Dict[str, Any] = {"draftKey": draft_key, "payload": payload}
        if if_version is not None:
            body["ifVersion"] = if_version

        try:
            response = await self.client.post(
                f"{self.base_url}/api/drafts", json=body, headers=self.headers
            )
        except httpx.RequestError as e:
            logger.warning("draft.transport_failed", draft_key=draft_key, error=str(e))
            raise TransportError(str(e) or "Network error") from e

        if response.status_code in (200, 409, 429):
            try:
                return outcome_from_dict(response.json())
            except (ValueError, KeyError) as e:
                raise TransportError(f"Malformed response: {e}") from e

        raise _error_from_response(response)

    async def fetch(self, draft_key: str) -> Optional[Dict[str, Any]]:
        """GET the server's current copy of a draft, or None."""
        try:
            response = await self.client.get(
                f"{self.base_url}/api/drafts",
                params={"draftKey": draft_key},
                headers=self.headers,
            )
        except httpx.RequestError as e:
            raise TransportError(str(e) or "Network error") from e

        if response.status_code != 200:
            raise _error_from_response(response)
        return response.json().get("data")

    async def archive(self, draft_key: str) -> int:
        """Archive a draft (e.g. the user discarded it)."""
        try:
            response = await self.client.delete(
                f"{self.base_url}/api/drafts",
                params={"draftKey": draft_key},
                headers=self.headers,
            )
        except httpx.RequestError as e:
            raise TransportError(str(e) or "Network error") from e

        if response.status_code != 200:
            raise _error_from_response(response)
        return int(response.json()["data"]["archived"])
