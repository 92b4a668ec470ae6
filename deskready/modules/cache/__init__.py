"""
Cache Module - Black Box Interface

Purpose: Serve the latest readiness snapshot within its time-to-live
Interface: ReadinessCache.get(force_refresh), refresh(), invalidate()
Hidden: Slot storage (memory or Redis), TTL arithmetic, serialization

Replaceable with any single-slot store implementing SnapshotSlot.
"""

from .cache import InMemorySnapshotSlot, ReadinessCache, RedisSnapshotSlot, SnapshotSlot

__all__ = ["ReadinessCache", "SnapshotSlot", "InMemorySnapshotSlot", "RedisSnapshotSlot"]
