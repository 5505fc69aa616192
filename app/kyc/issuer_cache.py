"""Time-bounded cache of authorized issuer addresses.

State machine:

    EMPTY --get--> REFRESHING --ok--> FRESH --ttl--> STALE --get--> REFRESHING
                        |                                             |
                        +--fail (no snapshot)--> EMPTY     fail --> STALE (served)

Reads of a FRESH snapshot take no lock and never suspend. A refresh runs
as a single asyncio task; every caller arriving while it is in flight awaits
that same task instead of starting another (single-flight). The snapshot is
replaced by one assignment, so readers see either the old set or the new
one, never a mix.

After a failed refresh the stale set keeps being served for retry_seconds
before the registry is tried again, so an outage does not put a registry
round trip on every read.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional

from app.core.config import ISSUER_CACHE_RETRY_SECONDS, ISSUER_CACHE_TTL_SECONDS
from app.kyc.exceptions import AuthorizationCacheError

log = logging.getLogger(__name__)

IssuerFetcher = Callable[[], Awaitable[Iterable[str]]]


class CacheState(str, Enum):
    EMPTY = "EMPTY"
    FRESH = "FRESH"
    STALE = "STALE"
    REFRESHING = "REFRESHING"


@dataclass
class IssuerCacheMetrics:
    """Counters for /admin.

    Attributes:
        hits: Reads served from a fresh snapshot.
        refreshes: Successful registry fetches.
        refresh_failures: Failed registry fetches.
        stale_served: Failed refreshes answered with the previous snapshot.
        joined: Callers that waited on a refresh someone else started.
    """

    hits: int = 0
    refreshes: int = 0
    refresh_failures: int = 0
    stale_served: int = 0
    joined: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "refreshes": self.refreshes,
            "refresh_failures": self.refresh_failures,
            "stale_served": self.stale_served,
            "joined": self.joined,
        }


@dataclass(frozen=True)
class _Snapshot:
    issuers: FrozenSet[str]
    fetched_at: float


class IssuerAuthorizationCache:
    """Refresh-on-expiry cache of the trusted issuer set."""

    def __init__(
        self,
        fetcher: IssuerFetcher,
        ttl_seconds: float = ISSUER_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        retry_seconds: float = ISSUER_CACHE_RETRY_SECONDS,
    ):
        """Initialize an empty cache.

        Args:
            fetcher: Coroutine function returning the current issuer set.
            ttl_seconds: Snapshot lifetime (default 5 minutes).
            clock: Monotonic time source, injectable for tests.
            retry_seconds: After a failed refresh, how long the stale set is
                served before the registry is tried again.
        """
        self._fetcher = fetcher
        self._ttl = ttl_seconds
        self._clock = clock
        self._retry_seconds = retry_seconds
        self._retry_after = float("-inf")
        self._snapshot: Optional[_Snapshot] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._metrics = IssuerCacheMetrics()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def metrics(self) -> IssuerCacheMetrics:
        return self._metrics

    @property
    def state(self) -> CacheState:
        if self._refresh_task is not None and not self._refresh_task.done():
            return CacheState.REFRESHING
        if self._snapshot is None:
            return CacheState.EMPTY
        if self._is_fresh(self._snapshot):
            return CacheState.FRESH
        return CacheState.STALE

    async def get(self, force_refresh: bool = False) -> FrozenSet[str]:
        """Return the trusted issuer set, refreshing when needed.

        Args:
            force_refresh: Refresh even if the snapshot is fresh.

        Raises:
            AuthorizationCacheError: Refresh failed and nothing is cached.
        """
        snapshot = self._snapshot
        if not force_refresh and snapshot is not None:
            if self._is_fresh(snapshot):
                self._metrics.hits += 1
                return snapshot.issuers
            if self._clock() < self._retry_after:
                self._metrics.stale_served += 1
                return snapshot.issuers

        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._refresh())
            self._refresh_task = task
        else:
            self._metrics.joined += 1

        # Shield so one caller's cancellation does not cancel the shared refresh
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        """Mark the snapshot stale; the next get refreshes.

        The old set is kept as the fallback for a failing refresh.
        """
        if self._snapshot is not None:
            self._snapshot = _Snapshot(self._snapshot.issuers, float("-inf"))
        self._retry_after = float("-inf")

    def clear(self) -> None:
        """Drop the snapshot entirely (back to EMPTY)."""
        self._snapshot = None
        self._retry_after = float("-inf")

    def describe(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        return {
            "state": self.state.value,
            "ttl_seconds": self._ttl,
            "retry_seconds": self._retry_seconds,
            "issuer_count": len(snapshot.issuers) if snapshot else 0,
            "metrics": self._metrics.to_dict(),
        }

    def _is_fresh(self, snapshot: _Snapshot) -> bool:
        return self._clock() - snapshot.fetched_at < self._ttl

    async def _refresh(self) -> FrozenSet[str]:
        log.debug("Fetching authorized issuers from registry...")
        try:
            issuers = frozenset(await self._fetcher())
            self._snapshot = _Snapshot(issuers, self._clock())
            self._retry_after = float("-inf")
            self._metrics.refreshes += 1
            return issuers
        except Exception as e:
            self._metrics.refresh_failures += 1
            previous = self._snapshot
            if previous is not None:
                self._metrics.stale_served += 1
                self._retry_after = self._clock() + self._retry_seconds
                log.warning(
                    f"Issuer registry refresh failed, serving cached set "
                    f"({len(previous.issuers)} issuers) for {self._retry_seconds}s: {e}"
                )
                return previous.issuers
            raise AuthorizationCacheError(f"Issuer registry unavailable: {e}") from e
        finally:
            self._refresh_task = None
