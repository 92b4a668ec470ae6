"""
Readiness cache for Deskready.

Holds exactly one readiness snapshot with its creation time. Callers get
the stored snapshot until the TTL elapses or they force a refresh.

Design Principles:
- Single slot: each refresh replaces the entry wholesale
- Never raises: evaluation or storage failures still yield a snapshot
- Refreshes may race; the last completed evaluation wins
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Protocol

from ..readiness import (
    ERROR_CODES,
    CachedEntry,
    CacheMetadata,
    ReadinessEvaluator,
    ReadinessSnapshot,
    error_message,
    unknown_snapshot,
)

logger = logging.getLogger("deskready.cache")


class SnapshotSlot(Protocol):
    """Storage for the single cached entry."""

    async def load(self) -> Optional[CachedEntry]:
        ...

    async def store(self, entry: CachedEntry) -> None:
        ...

    async def clear(self) -> None:
        ...


class InMemorySnapshotSlot:
    """Process-local slot."""

    def __init__(self):
        self._entry: Optional[CachedEntry] = None

    async def load(self) -> Optional[CachedEntry]:
        return self._entry

    async def store(self, entry: CachedEntry) -> None:
        self._entry = entry

    async def clear(self) -> None:
        self._entry = None


class RedisSnapshotSlot:
    """
    Slot backed by one Redis key.

    Storage errors are logged and treated as a cache miss so readiness
    checks keep working when Redis is down.
    """

    DEFAULT_KEY = "deskready:readiness:snapshot"

    def __init__(self, redis_client, ttl_seconds: float, key: str = DEFAULT_KEY):
        """
        Initialize Redis snapshot slot.

        Args:
            redis_client: Async Redis client
            ttl_seconds: Key expiry, rounded up to whole seconds
            key: Redis key holding the entry
        """
        self.redis = redis_client
        self.key = key
        self.expire_seconds = max(1, math.ceil(ttl_seconds))

    async def load(self) -> Optional[CachedEntry]:
        try:
            data = await self.redis.get(self.key)
            if not data:
                return None

            # Handle bytes from Redis
            if isinstance(data, bytes):
                data = data.decode("utf-8")

            return CachedEntry.model_validate_json(data)

        except Exception as e:
            logger.error(f"Failed to load cached readiness snapshot: {e}")
            return None

    async def store(self, entry: CachedEntry) -> None:
        try:
            await self.redis.setex(self.key, self.expire_seconds, entry.model_dump_json())
        except Exception as e:
            logger.error(f"Failed to store readiness snapshot: {e}")

    async def clear(self) -> None:
        try:
            await self.redis.delete(self.key)
        except Exception as e:
            logger.error(f"Failed to clear readiness snapshot: {e}")


class ReadinessCache:
    """Serves readiness snapshots, re-evaluating when the entry is stale."""

    # Short enough that a freshly granted permission shows up quickly.
    DEFAULT_TTL = 5.0

    def __init__(
        self,
        evaluator: ReadinessEvaluator,
        ttl_seconds: float = DEFAULT_TTL,
        slot: Optional[SnapshotSlot] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize readiness cache.

        Args:
            evaluator: Evaluator run on every refresh
            ttl_seconds: How long a snapshot is served from cache
            slot: Entry storage (in-memory by default)
            clock: Time source (defaults to the evaluator's clock)
        """
        if ttl_seconds < 0:
            raise ValueError(f"Cache TTL must not be negative, got {ttl_seconds}")
        self.evaluator = evaluator
        self.ttl = timedelta(seconds=ttl_seconds)
        self.slot = slot or InMemorySnapshotSlot()
        self.clock = clock or evaluator.clock

    @property
    def ttl_seconds(self) -> float:
        return self.ttl.total_seconds()

    def _metadata(self, created_at: datetime, from_cache: bool) -> CacheMetadata:
        return CacheMetadata(
            ttl_seconds=self.ttl_seconds,
            expires_at=created_at + self.ttl,
            from_cache=from_cache,
        )

    def is_fresh(self, entry: CachedEntry, now: datetime) -> bool:
        return now - entry.created_at < self.ttl

    async def get(self, force_refresh: bool = False) -> ReadinessSnapshot:
        """
        Get the readiness snapshot.

        Args:
            force_refresh: Re-evaluate even if a fresh entry exists

        Returns:
            Snapshot with ``cache.from_cache`` telling how it was served
        """
        if not force_refresh:
            entry = await self.slot.load()
            if entry is not None and self.is_fresh(entry, self.clock()):
                logger.debug("Serving readiness snapshot from cache")
                return entry.snapshot.with_cache(self._metadata(entry.created_at, True))

        return await self.refresh()

    async def refresh(self) -> ReadinessSnapshot:
        """Evaluate now and replace the stored entry."""
        started_at = self.clock()
        try:
            evaluation = await self.evaluator.evaluate()
        except Exception as e:
            logger.exception("Readiness evaluation failed unexpectedly")
            created_at = self.clock()
            snapshot = unknown_snapshot(
                error_code=ERROR_CODES["PREFLIGHT_UNKNOWN"],
                message="Desktop control readiness check failed unexpectedly.",
                cause=error_message(e),
                checked_at=started_at,
                ttl_seconds=self.ttl_seconds,
                expires_at=created_at + self.ttl,
            )
        else:
            created_at = self.clock()
            snapshot = evaluation.to_snapshot(self._metadata(created_at, False))

        await self.slot.store(CachedEntry(snapshot=snapshot, created_at=created_at))
        return snapshot

    async def invalidate(self) -> None:
        """Drop the stored entry so the next get re-evaluates."""
        await self.slot.clear()

    async def describe(self) -> Dict[str, Any]:
        """Cache state for the health endpoint."""
        entry = await self.slot.load()
        return {
            "ttlSeconds": self.ttl_seconds,
            "hasEntry": entry is not None,
            "fresh": entry is not None and self.is_fresh(entry, self.clock()),
            "slot": type(self.slot).__name__,
        }
