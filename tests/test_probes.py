"""
Tests for the capability probes and the default host dependencies.
"""

import os
import sys
import threading

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeHost, install_runtime
from deskready.modules.readiness import default_dependencies
from deskready.modules.readiness.host import default_runner_path
from deskready.modules.readiness.probes import (
    probe_action_execution,
    probe_runtime_health,
    probe_screen_capture,
    runtime_entrypoints,
)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw,signal,retryable",
    [
        ("granted", "granted", False),
        ("Denied", "denied", False),
        ("restricted", "restricted", False),
        ("not-determined", "not_determined", False),
        ("provisional", "unknown", True),
    ],
)
async def test_screen_capture_signals(raw, signal, retryable):
    reading = await probe_screen_capture(FakeHost(screen=raw).dependencies())

    assert reading.signal == signal
    assert reading.retryable is retryable
    assert reading.details == {"media_access_status": raw}


@pytest.mark.asyncio
async def test_action_execution_accepts_sync_dependency():
    host = FakeHost(trusted=False)

    reading = await probe_action_execution(host.dependencies())

    assert reading.ok is False
    assert reading.signal == "denied"
    assert host.calls["accessibility"] == 1


@pytest.mark.asyncio
async def test_runtime_health_with_real_files(tmp_path):
    install_runtime(tmp_path)
    deps = default_dependencies(str(tmp_path), runner_path="npx")

    reading = await probe_runtime_health(deps)

    assert reading.ok is True
    assert reading.signal == "healthy"
    assert reading.details["runtime_root"] == str(tmp_path)
    assert reading.details["missing_core_entrypoints"] == []


@pytest.mark.asyncio
async def test_runtime_health_reports_missing_files(tmp_path):
    support = runtime_entrypoints(str(tmp_path))["support"]
    install_runtime(tmp_path, skip=support)
    runner = str(tmp_path / "bin" / "npx")
    deps = default_dependencies(str(tmp_path), runner_path=runner)

    reading = await probe_runtime_health(deps)

    assert reading.ok is False
    assert reading.signal == "missing_prerequisites"
    assert reading.details["runner_missing"] is True
    assert reading.details["missing_core_entrypoints"] == []
    assert reading.details["missing_support_entrypoints"] == support


@pytest.mark.asyncio
async def test_relative_runner_is_not_checked_on_disk():
    host = FakeHost(runner_path="npx", missing=["runner"])

    reading = await probe_runtime_health(host.dependencies())

    assert reading.details["runner_missing"] is False
    assert reading.ok is True


def test_default_runner_path_prefers_configured():
    assert default_runner_path("/custom/npx") == "/custom/npx"
    assert default_runner_path(None).endswith("npx")


@pytest.mark.asyncio
async def test_sync_dependency_runs_off_the_event_loop():
    loop_thread = threading.get_ident()
    seen = []
    host = FakeHost(trusted=lambda: seen.append(threading.get_ident()) or True)

    reading = await probe_action_execution(host.dependencies())

    assert reading.ok is True
    assert seen and seen[0] != loop_thread


@pytest.mark.asyncio
@pytest.mark.parametrize("check_permission", [probe_screen_capture, probe_action_execution])
async def test_permission_checks_short_circuit_off_macos(check_permission):
    host = FakeHost(platform="linux")

    reading = await check_permission(host.dependencies())

    assert reading.ok is False
    assert reading.signal == "platform_unsupported"
    assert reading.details == {"platform": "linux"}
    assert host.calls["screen"] == 0
    assert host.calls["accessibility"] == 0


@pytest.mark.asyncio
async def test_runtime_health_still_runs_off_macos():
    reading = await probe_runtime_health(FakeHost(platform="linux").dependencies())

    assert reading.ok is True


@pytest.mark.asyncio
async def test_runtime_health_without_runtime_root():
    host = FakeHost(runtime_root=None)

    reading = await probe_runtime_health(host.dependencies())

    assert reading.ok is False
    assert reading.details["runtime_root"] is None
    assert reading.details["runtime_root_missing"] is True
    assert reading.details["missing_core_entrypoints"] == [
        os.path.join("screen-capture", "src", "index.ts"),
        os.path.join("action-executor", "src", "index.ts"),
    ]
    assert "None" not in "".join(reading.details["missing_core_entrypoints"])


def test_default_dependencies_keep_unset_runtime_root():
    deps = default_dependencies(None, runner_path="npx", platform="linux")

    assert deps.get_runtime_root() is None
    assert deps.platform == "linux"
