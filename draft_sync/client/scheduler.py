"""
Autosave scheduler: the client half of draft synchronization.

One scheduler per draft key, driven by ``edit()`` calls from the form host on
a single asyncio event loop.

States:
    idle      nothing edited yet
    dirty     edits waiting for the debounce to go quiet
    saving    a request is in flight
    saved     server acknowledged the latest snapshot
    paused    throttled; one retry is scheduled after the server's delay
    conflict  server holds a newer version; waiting for resolve_conflict()
    failed    last attempt errored (see ``last_error``)

Rules:
- Pure debounce: every edit re-arms the timer.
- Single-flight: at most one request in flight. A debounce that fires during
  a request does nothing; the response handler schedules the follow-up.
- At most one pending timer, so at most one queued follow-up.
- Timer-driven requests start at least ``min_interval_seconds`` apart;
  ``flush()`` and conflict resolution are explicit and skip the floor.
- Every edit is either in the in-flight snapshot or leaves ``dirty`` set,
  which guarantees a later request.
- In-flight requests are never cancelled.
"""

from __future__ import annotations

import asyncio
import copy
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

import structlog

from ..config import get_settings
from ..errors import AuthError, DraftSyncError, TransportError
from ..normalizer import content_hash
from ..outcomes import Conflict, Outcome, RateLimited, Saved
from .transport import DraftTransport

logger = structlog.get_logger(__name__)


class SaveState(str, Enum):
    """Autosave status shown by the form."""

    IDLE = "idle"
    DIRTY = "dirty"
    SAVING = "saving"
    SAVED = "saved"
    PAUSED = "paused"
    CONFLICT = "conflict"
    FAILED = "failed"


class ConflictResolution(str, Enum):
    """User's choice when the server holds a newer version."""

    KEEP_LOCAL = "keep_local"
    RELOAD = "reload"


class AutosaveScheduler:
    """Debounced, single-flight autosave for one draft key."""

    def __init__(
        self,
        transport: DraftTransport,
        draft_key: str,
        debounce_seconds: Optional[float] = None,
        min_interval_seconds: Optional[float] = None,
        acked_version: Optional[int] = None,
        acked_hash: Optional[str] = None,
        on_state_change: Optional[Callable[[SaveState], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the scheduler.

        Args:
            transport: Server access (HTTP in production)
            draft_key: Draft this scheduler owns
            debounce_seconds: Quiet period before saving (default from config)
            min_interval_seconds: Floor between request starts for follow-ups
            acked_version: Version of a resumed draft, used as first ifVersion
            acked_hash: Content hash of a resumed draft
            on_state_change: Called with the new state on every transition
            clock: Monotonic clock used for the request floor
        """
        settings = get_settings()
        self.transport = transport
        self.draft_key = draft_key
        self.debounce_seconds = (
            settings.autosave_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.min_interval_seconds = (
            settings.autosave_min_interval_seconds
            if min_interval_seconds is None
            else min_interval_seconds
        )
        self.on_state_change = on_state_change
        self.clock = clock

        self.state = SaveState.IDLE
        self.in_flight = False
        self.dirty = False
        self.last_acked_version = acked_version
        self.last_acked_hash = acked_hash
        self.server_version: Optional[int] = None
        self.retry_after: Optional[int] = None
        self.last_error: Optional[DraftSyncError] = None
        self.last_outcome: Optional[Outcome] = None
        self.requests_sent = 0

        self._payload: Optional[Dict[str, Any]] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._request: Optional[asyncio.Task] = None
        self._last_request_at: Optional[float] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._log = logger.bind(draft_key=draft_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        """Latest local snapshot."""
        return copy.deepcopy(self._payload)

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def edit(self, payload: Dict[str, Any]) -> None:
        """Record the form's current state. Call on every change."""
        if self._closed:
            raise RuntimeError("Scheduler is closed")

        self._payload = copy.deepcopy(payload)
        self.dirty = True

        if self.state in (SaveState.PAUSED, SaveState.CONFLICT):
            # The retry timer, or the user, owns the next attempt
            return
        if self._auth_failed:
            return

        if not self.in_flight:
            self._set_state(SaveState.DIRTY)
        self._arm(self.debounce_seconds)

    async def flush(self) -> SaveState:
        """Save now, waiting for any in-flight request first. Used before publishing."""
        self._cancel_timer()
        await self._await_request()
        if self.dirty and self.state != SaveState.CONFLICT:
            self._start_request()
            await self._await_request()
        self._refresh_idle()
        return self.state

    async def resolve_conflict(
        self, resolution: ConflictResolution
    ) -> Optional[Dict[str, Any]]:
        """Leave the conflict state the way the user chose.

        KEEP_LOCAL overwrites the server copy with the local snapshot, based
        on the server's current version. RELOAD discards local edits and
        adopts the server copy, which is returned for the form to render.
        """
        if self.state != SaveState.CONFLICT:
            raise RuntimeError(f"No conflict to resolve (state={self.state.value})")

        if resolution == ConflictResolution.KEEP_LOCAL:
            self.last_acked_version = self.server_version
            self.last_acked_hash = None
            self.server_version = None
            self.dirty = True
            self._set_state(SaveState.DIRTY)
            self._start_request()
            return None

        record = await self.transport.fetch(self.draft_key)
        self.server_version = None
        self.dirty = False
        if record is None:
            # Archived elsewhere (published or discarded)
            self._payload = None
            self.last_acked_version = None
            self.last_acked_hash = None
            self._set_state(SaveState.IDLE)
            self._refresh_idle()
            return None

        self._payload = copy.deepcopy(record["payload"])
        self.last_acked_version = int(record["version"])
        self.last_acked_hash = record["contentHash"]
        self._set_state(SaveState.SAVED)
        self._refresh_idle()
        return copy.deepcopy(record["payload"])

    async def wait_idle(self) -> None:
        """Wait until no request is in flight and no timer is pending."""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop scheduling. An in-flight request is allowed to finish."""
        self._closed = True
        self._cancel_timer()
        await self._await_request()
        self._refresh_idle()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(0.0, delay), self._fire)
        self._idle.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            self._refresh_idle()
            return
        if self.in_flight:
            # Completion handler schedules the follow-up
            return
        wait = self._floor_remaining()
        if wait > 0 and self.dirty and self.state != SaveState.PAUSED:
            self._arm(wait)
            return
        self._start_request()
        self._refresh_idle()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _start_request(self) -> None:
        if self.in_flight or self.state == SaveState.CONFLICT:
            return
        if self._auth_failed:
            return
        if not self.dirty or self._payload is None:
            return

        snapshot = copy.deepcopy(self._payload)
        if self.last_acked_hash is not None and content_hash(snapshot) == self.last_acked_hash:
            # Local shortcut: nothing the server doesn't already have
            self.dirty = False
            self._set_state(SaveState.SAVED)
            return

        self.in_flight = True
        self.dirty = False
        self.requests_sent += 1
        self._last_request_at = self.clock()
        self._set_state(SaveState.SAVING)
        self._idle.clear()
        self._request = asyncio.ensure_future(self._run(snapshot, self.last_acked_version))

    async def _run(self, snapshot: Dict[str, Any], if_version: Optional[int]) -> None:
        try:
            outcome = await self.transport.save(self.draft_key, snapshot, if_version)
        except DraftSyncError as e:
            self.in_flight = False
            self._on_failure(e)
        except Exception as e:
            self._log.exception("autosave.unexpected_error")
            self.in_flight = False
            self._on_failure(TransportError(str(e) or type(e).__name__))
        else:
            self.in_flight = False
            self._on_outcome(outcome)

        self._schedule_follow_up()
        self._refresh_idle()

    def _on_outcome(self, outcome: Outcome) -> None:
        self.last_outcome = outcome

        if isinstance(outcome, Saved):
            # Server values win over anything computed locally
            self.last_acked_version = outcome.version
            self.last_acked_hash = outcome.content_hash
            self.last_error = None
            self.retry_after = None
            self._set_state(SaveState.DIRTY if self.dirty else SaveState.SAVED)
            self._log.debug("autosave.saved", version=outcome.version, noop=outcome.noop)
            return

        if isinstance(outcome, Conflict):
            self.server_version = outcome.server_version
            self.dirty = True
            self._cancel_timer()
            self._set_state(SaveState.CONFLICT)
            self._log.info(
                "autosave.conflict",
                local_version=self.last_acked_version,
                server_version=outcome.server_version,
            )
            return

        if isinstance(outcome, RateLimited):
            self.retry_after = outcome.retry_after
            self.dirty = True
            self._set_state(SaveState.PAUSED)
            if not self._closed:
                self._arm(outcome.retry_after)
            self._log.info("autosave.paused", retry_after=outcome.retry_after)

    def _on_failure(self, error: DraftSyncError) -> None:
        self.last_error = error
        # The snapshot may not have landed; the next edit cycle resends it
        self.dirty = True
        self._set_state(SaveState.FAILED)
        if isinstance(error, AuthError):
            # An edit made during the request may have armed the debounce
            self._cancel_timer()
        if error.retryable:
            self._log.warning("autosave.failed", code=error.code, error=error.message)
        else:
            self._log.error("autosave.failed", code=error.code, error=error.message)

    def _schedule_follow_up(self) -> None:
        if self._closed or self.state != SaveState.DIRTY or self._timer is not None:
            return
        self._arm(self._floor_remaining())

    @property
    def _auth_failed(self) -> bool:
        return self.state == SaveState.FAILED and isinstance(self.last_error, AuthError)

    def _floor_remaining(self) -> float:
        """Seconds until another request may start."""
        if self._last_request_at is None:
            return 0.0
        return self.min_interval_seconds - (self.clock() - self._last_request_at)

    async def _await_request(self) -> None:
        if self._request is not None and not self._request.done():
            await asyncio.shield(self._request)

    def _refresh_idle(self) -> None:
        if not self.in_flight and self._timer is None:
            self._idle.set()
        else:
            self._idle.clear()

    def _set_state(self, state: SaveState) -> None:
        if state == self.state:
            return
        self.state = state
        if self.on_state_change is not None:
            self.on_state_change(state)
