"""
Server-side draft reconciliation.

Decides, for one save request, between:

- NoOp: normalized content equals the stored row. No write, no rate budget;
  a create that loses the insert race gives its budget back.
- Conflict: the caller's ``if_version`` is stale, or a concurrent writer won
  the compare-and-swap.
- RateLimited: content changed but the caller has no write budget left.
- Written: content changed and the guarded update (or first insert) landed.

The guarded ``UPDATE ... WHERE version = :expected`` is the only
serialization point; there is no application-level lock.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import structlog
from sqlalchemy.orm import Session
from ulid import ULID

from .config import Settings, get_settings
from .db.models import DraftModel
from .db.services import DraftStore, DuplicateDraftError
from .errors import StorageError
from .normalizer import content_hash
from .outcomes import Conflict, NoOp, Outcome, RateLimited, Written, utc_now
from .ratelimit import WriteRateLimiter

logger = structlog.get_logger(__name__)


def generate_ulid() -> str:
    """Generate a ULID for draft row IDs."""
    return str(ULID())


class Reconciler:
    """Applies one draft save with dedup, optimistic concurrency and rate limiting."""

    def __init__(
        self,
        db: Session,
        rate_limiter: WriteRateLimiter,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = DraftStore(db)
        self.rate_limiter = rate_limiter
        self.settings = settings or get_settings()
        self.clock = clock

    def reconcile(
        self,
        owner_id: str,
        draft_key: str,
        payload: Dict[str, Any],
        if_version: Optional[int] = None,
    ) -> Outcome:
        """Save ``payload`` as the draft (owner_id, draft_key).

        Args:
            owner_id: Authenticated caller identity
            draft_key: Client-chosen draft identifier (already validated)
            payload: Validated payload document
            if_version: Version the caller last saw; None skips the stale check

        Returns:
            Written, NoOp, Conflict or RateLimited

        Raises:
            StorageError: persistence failed; the request can be resent as is
        """
        digest = content_hash(payload)
        log = logger.bind(owner_id=owner_id, draft_key=draft_key)

        stored = self.store.get_active(owner_id, draft_key)
        if stored is None:
            return self._create(owner_id, draft_key, payload, digest, log)

        # Snapshot before any commit expires the instance
        stored_version = stored.version
        stored_hash = stored.content_hash
        stored_updated_at = stored.updated_at
        stored_id = stored.id

        if stored_hash == digest:
            log.debug("draft.noop", version=stored_version)
            return NoOp(stored_version, stored_hash, stored_updated_at)

        if if_version is not None and if_version != stored_version:
            log.info(
                "draft.conflict",
                if_version=if_version,
                server_version=stored_version,
            )
            return Conflict(stored_version, stored_updated_at)

        decision = self.rate_limiter.hit(owner_id)
        if not decision.allowed:
            log.info("draft.rate_limited", retry_after=decision.retry_after)
            return RateLimited(decision.retry_after)

        now = self.clock()
        swapped = self.store.compare_and_swap(
            draft_id=stored_id,
            expected_version=stored_version,
            payload=payload,
            content_hash=digest,
            now=now,
            expires_at=self._expires_at(now),
        )
        if not swapped:
            self.rate_limiter.refund(owner_id)
            return self._lost_race(owner_id, draft_key, stored_version, stored_updated_at, log)

        log.info("draft.written", version=stored_version + 1)
        return Written(stored_version + 1, digest, now)

    def _create(
        self,
        owner_id: str,
        draft_key: str,
        payload: Dict[str, Any],
        digest: str,
        log: Any,
    ) -> Outcome:
        decision = self.rate_limiter.hit(owner_id)
        if not decision.allowed:
            log.info("draft.rate_limited", retry_after=decision.retry_after, create=True)
            return RateLimited(decision.retry_after)

        now = self.clock()
        try:
            self.store.insert(
                draft_id=generate_ulid(),
                owner_id=owner_id,
                draft_key=draft_key,
                payload=payload,
                content_hash=digest,
                now=now,
                expires_at=self._expires_at(now),
            )
        except DuplicateDraftError as e:
            # No write landed
            self.rate_limiter.refund(owner_id)
            winner = self.store.refetch_active(owner_id, draft_key)
            if winner is None:
                # Created and archived in between; resending is safe
                raise StorageError("Draft changed concurrently") from e
            if winner.content_hash == digest:
                log.debug("draft.noop", version=winner.version, create_race=True)
                return NoOp(winner.version, winner.content_hash, winner.updated_at)
            log.info("draft.conflict", server_version=winner.version, create_race=True)
            return Conflict(winner.version, winner.updated_at)

        log.info("draft.created", version=1)
        return Written(1, digest, now)

    def _lost_race(
        self,
        owner_id: str,
        draft_key: str,
        stale_version: int,
        stale_updated_at: datetime,
        log: Any,
    ) -> Conflict:
        current: Optional[DraftModel] = self.store.refetch_active(owner_id, draft_key)
        if current is None:
            # Archived under us; report what we last knew
            log.info("draft.conflict", server_version=stale_version, archived=True)
            return Conflict(stale_version, stale_updated_at)
        log.info("draft.conflict", server_version=current.version, cas=True)
        return Conflict(current.version, current.updated_at)

    def _expires_at(self, now: datetime) -> datetime:
        return now + timedelta(days=self.settings.draft_ttl_days)
