"""
Shared pytest fixtures for Deskready tests.

This module provides common fixtures including:
- FakeHost: Scriptable host answers for the readiness probes
- FakeClock: Manually advanced time source
- Redis mocks for the cache slot tests
"""

import asyncio
import os
import sys
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any, Iterable, Optional
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from deskready.modules.readiness import ReadinessDependencies, ReadinessEvaluator
from deskready.modules.readiness.probes import runtime_entrypoints

RUNTIME_ROOT = "/opt/deskready/skills"


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# =============================================================================
# Host Faking Infrastructure
# =============================================================================


async def hang_forever():
    """Probe answer that never settles."""
    await asyncio.Event().wait()


def install_runtime(root, skip=()):
    """Create the runtime entrypoint files under ``root``."""
    for group in ("core", "support"):
        for path in runtime_entrypoints(str(root))[group]:
            if path in skip:
                continue
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w") as f:
                f.write("export {};\n")


class FakeHost:
    """
    Scriptable answers for the readiness dependencies.

    An answer may be a value, an exception instance (raised), or a
    coroutine function (awaited). The screen query is async and the
    accessibility query is sync, so both call styles stay covered. A
    callable ``trusted`` answer runs in a worker thread.

    Example:
        host = FakeHost(screen="denied", missing=["core"])
        evaluator = ReadinessEvaluator(host.dependencies())
    """

    def __init__(
        self,
        screen: Any = "granted",
        trusted: Any = True,
        missing: Iterable[str] = (),
        runner_path: Optional[str] = "npx",
        runtime_root: Optional[str] = RUNTIME_ROOT,
        clock: Optional[FakeClock] = None,
        platform: str = "darwin",
    ):
        self.screen = screen
        self.trusted = trusted
        self.runner_path = runner_path
        self.runtime_root = runtime_root
        self.platform = platform
        self.clock = clock or FakeClock()
        self.missing = set()
        self.calls = Counter()
        self.set_missing(missing)

    def set_missing(self, groups: Iterable[str]) -> None:
        """Mark entrypoint groups ("core", "support", "runner") or paths as absent."""
        entrypoints = runtime_entrypoints(self.runtime_root) if self.runtime_root else {}
        self.missing = set()
        for group in groups:
            if group in entrypoints:
                self.missing.update(entrypoints[group])
            elif group == "runner":
                self.missing.add(self.runner_path)
            else:
                self.missing.add(group)

    async def _answer(self, answer: Any) -> Any:
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return await answer()
        return answer

    async def get_screen_media_access_status(self):
        self.calls["screen"] += 1
        return await self._answer(self.screen)

    def is_accessibility_trusted(self):
        self.calls["accessibility"] += 1
        if isinstance(self.trusted, BaseException):
            raise self.trusted
        if callable(self.trusted):
            return self.trusted()
        return self.trusted

    def file_exists(self, path: str) -> bool:
        self.calls["file_exists"] += 1
        return path not in self.missing

    def dependencies(self) -> ReadinessDependencies:
        return ReadinessDependencies(
            get_screen_media_access_status=self.get_screen_media_access_status,
            is_accessibility_trusted=self.is_accessibility_trusted,
            get_runtime_root=lambda: self.runtime_root,
            get_runner_path=lambda: self.runner_path,
            file_exists=self.file_exists,
            clock=self.clock,
            platform=self.platform,
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_host(fake_clock):
    return FakeHost(clock=fake_clock)


@pytest.fixture
def evaluator(fake_host):
    return ReadinessEvaluator(fake_host.dependencies())


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    return redis
