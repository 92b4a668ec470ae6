"""
Capability probes.

Each probe asks one injected dependency about the host and returns a
ProbeReading. Probes never interpret readings into states; that is the
classifier's job. The dependencies may be plain functions or coroutines
so the evaluator stays host-independent. Plain functions run in a worker
thread; an attempt timeout abandons them like any coroutine.
"""

import asyncio
import inspect
import os
import sys
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .models import CapabilityKind

# Screen media access answers that count as an explicit refusal.
DENIAL_SIGNALS = ("denied", "restricted", "not_determined")

# Permission queries only exist on this platform (sys.platform value).
SUPPORTED_PLATFORM = "darwin"
PLATFORM_UNSUPPORTED = "platform_unsupported"

# Relative to the runtime root. Core entrypoints are required for any
# desktop control; support entrypoints only widen what can be done.
CORE_ENTRYPOINTS = (
    ("screen-capture", "src", "index.ts"),
    ("action-executor", "src", "index.ts"),
)
SUPPORT_ENTRYPOINTS = (("file-permission", "src", "index.ts"),)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReadinessDependencies:
    """
    Host queries consumed by the probes.

    Every callable may return its value directly or as an awaitable.
    ``platform`` is a ``sys.platform`` style name.
    """

    get_screen_media_access_status: Callable[[], Any]
    is_accessibility_trusted: Callable[[], Any]
    get_runtime_root: Callable[[], Any]
    get_runner_path: Callable[[], Any]
    file_exists: Callable[[str], Any]
    clock: Callable[[], datetime] = utc_now
    platform: str = sys.platform


@dataclass(frozen=True)
class ProbeReading:
    """What a probe observed during one attempt."""

    capability: CapabilityKind
    ok: bool
    signal: str
    details: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    @property
    def is_denial(self) -> bool:
        return self.signal in DENIAL_SIGNALS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for attempt details."""
        data = asdict(self)
        data["capability"] = self.capability.value
        return data


async def resolve(value: Union[Any, Awaitable[Any]]) -> Any:
    """Await ``value`` if the dependency handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


async def call(func: Callable[..., Any], *args: Any) -> Any:
    """Call a dependency; plain functions run in a worker thread."""
    if inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    ):
        return await func(*args)
    return await resolve(await asyncio.to_thread(func, *args))


def _normalize_media_status(status: Any) -> str:
    return str(status).strip().lower().replace("-", "_")


def _unsupported_platform(
    capability: CapabilityKind, dependencies: ReadinessDependencies
) -> Optional[ProbeReading]:
    if dependencies.platform == SUPPORTED_PLATFORM:
        return None
    return ProbeReading(
        capability, False, PLATFORM_UNSUPPORTED, {"platform": dependencies.platform}
    )


async def probe_screen_capture(dependencies: ReadinessDependencies) -> ProbeReading:
    """Query the screen recording permission."""
    unsupported = _unsupported_platform(CapabilityKind.SCREEN_CAPTURE, dependencies)
    if unsupported is not None:
        return unsupported

    raw_status = await call(dependencies.get_screen_media_access_status)
    status = _normalize_media_status(raw_status)
    details = {"media_access_status": raw_status}

    if status == "granted":
        return ProbeReading(CapabilityKind.SCREEN_CAPTURE, True, "granted", details)

    if status in DENIAL_SIGNALS:
        return ProbeReading(CapabilityKind.SCREEN_CAPTURE, False, status, details)

    # Unrecognized answers are often transient while the OS settles.
    return ProbeReading(
        CapabilityKind.SCREEN_CAPTURE, False, "unknown", details, retryable=True
    )


async def probe_action_execution(dependencies: ReadinessDependencies) -> ProbeReading:
    """Query the accessibility trust flag."""
    unsupported = _unsupported_platform(CapabilityKind.ACTION_EXECUTION, dependencies)
    if unsupported is not None:
        return unsupported

    trusted = bool(await call(dependencies.is_accessibility_trusted))
    details = {"accessibility_trusted": trusted}
    if trusted:
        return ProbeReading(CapabilityKind.ACTION_EXECUTION, True, "granted", details)
    return ProbeReading(CapabilityKind.ACTION_EXECUTION, False, "denied", details)


def runtime_entrypoints(runtime_root: str) -> Dict[str, List[str]]:
    """Absolute paths of the runtime entrypoints under ``runtime_root``."""
    return {
        "core": [os.path.join(runtime_root, *parts) for parts in CORE_ENTRYPOINTS],
        "support": [os.path.join(runtime_root, *parts) for parts in SUPPORT_ENTRYPOINTS],
    }


async def _missing(paths: List[str], file_exists: Callable[[str], Any]) -> List[str]:
    missing = []
    for path in paths:
        if not await call(file_exists, path):
            missing.append(path)
    return missing


async def probe_runtime_health(dependencies: ReadinessDependencies) -> ProbeReading:
    """
    Verify that the desktop control runtime is installed.

    A runner path only counts as missing when it is absolute; bare command
    names are resolved through PATH at launch time. Without a runtime root
    no entrypoint can be located, so every core entrypoint counts as missing.
    """
    runtime_root = await call(dependencies.get_runtime_root)
    runner_path: Optional[str] = await call(dependencies.get_runner_path)

    if runtime_root:
        runtime_root = str(runtime_root)
        entrypoints = runtime_entrypoints(runtime_root)
        missing_core = await _missing(entrypoints["core"], dependencies.file_exists)
        missing_support = await _missing(entrypoints["support"], dependencies.file_exists)
    else:
        runtime_root = None
        missing_core = [os.path.join(*parts) for parts in CORE_ENTRYPOINTS]
        missing_support = [os.path.join(*parts) for parts in SUPPORT_ENTRYPOINTS]

    runner_missing = bool(
        isinstance(runner_path, str)
        and os.path.isabs(runner_path)
        and not await call(dependencies.file_exists, runner_path)
    )

    details = {
        "runtime_root": runtime_root,
        "runtime_root_missing": runtime_root is None,
        "runner_path": runner_path,
        "runner_missing": runner_missing,
        "missing_core_entrypoints": missing_core,
        "missing_support_entrypoints": missing_support,
    }
    healthy = not (runner_missing or missing_core or missing_support)
    return ProbeReading(
        CapabilityKind.MCP_HEALTH,
        healthy,
        "healthy" if healthy else "missing_prerequisites",
        details,
    )


PROBES: Dict[CapabilityKind, Callable[[ReadinessDependencies], Awaitable[ProbeReading]]] = {
    CapabilityKind.SCREEN_CAPTURE: probe_screen_capture,
    CapabilityKind.ACTION_EXECUTION: probe_action_execution,
    CapabilityKind.MCP_HEALTH: probe_runtime_health,
}
