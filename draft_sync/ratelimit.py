"""
Write-rate limiting for draft saves.

Only real writes consult the limiter: the reconciler skips it entirely for
no-op saves, so retries and duplicate tabs never spend budget.

Policies (configurable via settings):
- draft_autosave_minute: DRAFT_WRITES_PER_MINUTE writes per 60 s window
- draft_mutate_minute: DRAFT_ARCHIVES_PER_MINUTE archives per 60 s window
- draft_mutate_daily: DRAFT_WRITES_PER_DAY saves and archives per 86400 s window

Counters are keyed by policy name, so the daily budget is shared by saves
and archives.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import structlog

from .config import Settings, get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RatePolicy:
    """At most ``limit`` hits per ``window_seconds`` for one identity."""

    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0
    policy: Optional[str] = None


class WriteRateLimiter(Protocol):
    """Anything the reconciler can ask for write budget."""

    def hit(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> RateDecision:
        ...

    def refund(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> None:
        ...


class FixedWindowRateLimiter:
    """In-process fixed-window counter keyed by (identity, policy, window).

    A hit is admitted only if every policy has room, and only then is it
    counted against all of them.
    """

    def __init__(
        self,
        policies: Sequence[RatePolicy],
        clock: Callable[[], float] = time.time,
    ):
        if not policies:
            raise ValueError("At least one rate policy is required")
        self.policies: List[RatePolicy] = list(policies)
        self.clock = clock
        self._counts: Dict[Tuple[str, str], Tuple[int, int]] = {}
        self._lock = threading.Lock()

    def hit(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> RateDecision:
        """Admit and count one hit, or report the longest wait.

        ``policies`` overrides the limiter's default set for this hit.
        """
        now = self.clock()
        with self._lock:
            windows = []
            rejected: Optional[RateDecision] = None
            for policy in policies or self.policies:
                window = int(now // policy.window_seconds)
                key = (identity, policy.name)
                current_window, count = self._counts.get(key, (window, 0))
                if current_window != window:
                    count = 0
                if count >= policy.limit:
                    window_end = (window + 1) * policy.window_seconds
                    retry_after = max(1, math.ceil(window_end - now))
                    if rejected is None or retry_after > rejected.retry_after:
                        rejected = RateDecision(False, retry_after, policy.name)
                windows.append((key, window, count))

            if rejected is not None:
                logger.info(
                    "rate_limit.rejected",
                    identity=identity,
                    policy=rejected.policy,
                    retry_after=rejected.retry_after,
                )
                return rejected

            for key, window, count in windows:
                self._counts[key] = (window, count + 1)
            return RateDecision(True)

    def refund(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> None:
        """Give back an admitted hit whose write never landed.

        Only counters still in their current window are decremented.
        """
        now = self.clock()
        with self._lock:
            for policy in policies or self.policies:
                key = (identity, policy.name)
                if key not in self._counts:
                    continue
                window, count = self._counts[key]
                if window == int(now // policy.window_seconds) and count > 0:
                    self._counts[key] = (window, count - 1)

    def reset(self, identity: Optional[str] = None) -> None:
        """Forget counters for one identity, or for everyone."""
        with self._lock:
            if identity is None:
                self._counts.clear()
            else:
                for key in [k for k in self._counts if k[0] == identity]:
                    del self._counts[key]


class UnlimitedRateLimiter:
    """Admits every hit. Used when RATE_LIMITING_ENABLED is false."""

    def hit(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> RateDecision:
        return RateDecision(True)

    def refund(
        self, identity: str, policies: Optional[Sequence[RatePolicy]] = None
    ) -> None:
        pass


def default_policies(settings: Optional[Settings] = None) -> List[RatePolicy]:
    settings = settings or get_settings()
    return [
        RatePolicy("draft_autosave_minute", settings.draft_writes_per_minute, 60),
        RatePolicy("draft_mutate_daily", settings.draft_writes_per_day, 86400),
    ]


def archive_policies(settings: Optional[Settings] = None) -> List[RatePolicy]:
    """Policies for archiving a draft; the daily budget is shared with saves."""
    settings = settings or get_settings()
    return [
        RatePolicy("draft_mutate_minute", settings.draft_archives_per_minute, 60),
        RatePolicy("draft_mutate_daily", settings.draft_writes_per_day, 86400),
    ]


_limiter: Optional[WriteRateLimiter] = None


def build_rate_limiter(settings: Optional[Settings] = None) -> WriteRateLimiter:
    settings = settings or get_settings()
    if not settings.rate_limiting_enabled:
        return UnlimitedRateLimiter()
    return FixedWindowRateLimiter(default_policies(settings))


def get_rate_limiter() -> WriteRateLimiter:
    """Process-wide limiter, created lazily (FastAPI dependency)."""
    global _limiter
    if _limiter is None:
        _limiter = build_rate_limiter()
    return _limiter
