"""
Tests for the readiness evaluator and overall status aggregation.

Tests cover:
- End-to-end evaluation against a fake host
- Aggregation precedence across the three capabilities
- Retry policy normalization
"""

import asyncio
import os
import sys
import time
from datetime import UTC, datetime

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeHost, hang_forever, install_runtime
from deskready.modules.readiness import (
    DEFAULT_RETRY_POLICY,
    AttemptOutcome,
    CapabilityCheckResult,
    CapabilityKind,
    CapabilityState,
    DesktopControlStatus,
    ReadinessEvaluator,
    RetryPolicy,
    aggregate_status,
    default_dependencies,
    normalize_retry_policy,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def check(capability, state, reason_code, message="m"):
    return CapabilityCheckResult(
        capability=capability,
        state=state,
        reason_code=reason_code,
        message=message,
        checked_at=NOW,
    )


def checks(screen=None, action=None, runtime=None):
    return {
        CapabilityKind.SCREEN_CAPTURE: screen
        or check(CapabilityKind.SCREEN_CAPTURE, CapabilityState.OK, "screen_capture_ok"),
        CapabilityKind.ACTION_EXECUTION: action
        or check(CapabilityKind.ACTION_EXECUTION, CapabilityState.OK, "action_execution_ok"),
        CapabilityKind.MCP_HEALTH: runtime
        or check(CapabilityKind.MCP_HEALTH, CapabilityState.OK, "runtime_health_ok"),
    }


# =============================================================================
# Evaluation
# =============================================================================


@pytest.mark.asyncio
async def test_all_granted_is_ready(evaluator):
    evaluation = await evaluator.evaluate()

    overall = aggregate_status(evaluation.checks)

    assert overall.status == DesktopControlStatus.READY
    assert overall.error_code is None
    assert {k: v.reason_code for k, v in evaluation.checks.items()} == {
        CapabilityKind.SCREEN_CAPTURE: "screen_capture_ok",
        CapabilityKind.ACTION_EXECUTION: "action_execution_ok",
        CapabilityKind.MCP_HEALTH: "runtime_health_ok",
    }
    for result in evaluation.checks.values():
        assert result.error_code is None
        assert [a.attempt for a in result.attempts] == [1]


@pytest.mark.asyncio
async def test_screen_denied_needs_screen_recording_permission(fake_host, evaluator):
    fake_host.screen = "denied"

    evaluation = await evaluator.evaluate()
    overall = aggregate_status(evaluation.checks)

    assert overall.status == DesktopControlStatus.NEEDS_SCREEN_RECORDING_PERMISSION
    assert overall.error_code == "screen_recording_permission_required"
    assert overall.remediation.system_settings_path.endswith("Screen Recording")

    screen = evaluation.checks[CapabilityKind.SCREEN_CAPTURE]
    assert screen.reason_code == "screen_capture_permission_denied"
    assert screen.error_code == "screen_recording_permission_required"
    assert evaluation.checks[CapabilityKind.ACTION_EXECUTION].state == CapabilityState.OK
    assert evaluation.checks[CapabilityKind.MCP_HEALTH].state == CapabilityState.OK


@pytest.mark.asyncio
async def test_accessibility_denied(fake_host, evaluator):
    fake_host.trusted = False

    evaluation = await evaluator.evaluate()

    assert aggregate_status(evaluation.checks).status == (
        DesktopControlStatus.NEEDS_ACCESSIBILITY_PERMISSION
    )


@pytest.mark.asyncio
async def test_missing_support_entrypoint_degrades_runtime(fake_host, evaluator):
    fake_host.set_missing(["support"])

    evaluation = await evaluator.evaluate()
    overall = aggregate_status(evaluation.checks)

    runtime = evaluation.checks[CapabilityKind.MCP_HEALTH]
    assert runtime.state == CapabilityState.DEGRADED
    assert runtime.reason_code == "runtime_health_missing_support_entrypoints"
    assert runtime.error_code == "mcp_health_degraded"
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "mcp_health_degraded"
    assert evaluation.checks[CapabilityKind.SCREEN_CAPTURE].state == CapabilityState.OK
    assert evaluation.checks[CapabilityKind.ACTION_EXECUTION].state == CapabilityState.OK


@pytest.mark.asyncio
async def test_missing_core_entrypoint_is_mcp_unhealthy(fake_host, evaluator):
    fake_host.set_missing(["core"])

    evaluation = await evaluator.evaluate()
    overall = aggregate_status(evaluation.checks)

    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "mcp_healthcheck_failed"


@pytest.mark.asyncio
async def test_hung_screen_probe_times_out_within_budget(fake_host):
    fake_host.screen = hang_forever
    evaluator = ReadinessEvaluator(
        fake_host.dependencies(),
        retry_policy={"screen_capture": {"timeout_ms": 10, "max_attempts": 3}},
    )

    evaluation = await asyncio.wait_for(evaluator.evaluate(), timeout=2)
    screen = evaluation.checks[CapabilityKind.SCREEN_CAPTURE]

    assert fake_host.calls["screen"] == 3
    assert [a.attempt for a in screen.attempts] == [1, 2, 3]
    assert screen.state == CapabilityState.UNAVAILABLE
    assert screen.reason_code == "screen_capture_probe_timeout"
    assert screen.retry_policy == RetryPolicy(timeout_ms=10, max_attempts=3)
    overall = aggregate_status(evaluation.checks)
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "screen_recording_status_unknown"


@pytest.mark.asyncio
async def test_accessibility_error_blocks_desktop_control(fake_host):
    fake_host.trusted = OSError("tccd unreachable")
    evaluator = ReadinessEvaluator(
        fake_host.dependencies(),
        retry_policy={"action_execution": {"timeout_ms": 500, "max_attempts": 2}},
    )

    evaluation = await evaluator.evaluate()
    overall = aggregate_status(evaluation.checks)

    action = evaluation.checks[CapabilityKind.ACTION_EXECUTION]
    assert fake_host.calls["accessibility"] == 2
    assert action.state == CapabilityState.UNAVAILABLE
    assert action.reason_code == "action_execution_probe_failed"
    assert action.error_code == "accessibility_status_unknown"
    assert action.details == {"cause": "tccd unreachable"}
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "accessibility_status_unknown"


@pytest.mark.asyncio
async def test_blocking_sync_accessibility_query_times_out(fake_host):
    fake_host.trusted = lambda: time.sleep(0.3) or True
    evaluator = ReadinessEvaluator(
        fake_host.dependencies(),
        retry_policy={"action_execution": {"timeout_ms": 10, "max_attempts": 3}},
    )

    started = time.monotonic()
    evaluation = await asyncio.wait_for(evaluator.evaluate(), timeout=2)
    elapsed = time.monotonic() - started

    action = evaluation.checks[CapabilityKind.ACTION_EXECUTION]
    assert [a.outcome for a in action.attempts] == [AttemptOutcome.TIMEOUT] * 3
    assert action.reason_code == "action_execution_probe_timeout"
    assert elapsed < 0.6
    assert evaluation.checks[CapabilityKind.SCREEN_CAPTURE].state == CapabilityState.OK
    assert aggregate_status(evaluation.checks).status == DesktopControlStatus.MCP_UNHEALTHY


@pytest.mark.asyncio
async def test_unsupported_platform_is_never_ready():
    host = FakeHost(platform="linux")

    evaluation = await ReadinessEvaluator(host.dependencies()).evaluate()
    overall = aggregate_status(evaluation.checks)

    for capability, prefix in (
        (CapabilityKind.SCREEN_CAPTURE, "screen_capture"),
        (CapabilityKind.ACTION_EXECUTION, "action_execution"),
    ):
        result = evaluation.checks[capability]
        assert result.state == CapabilityState.UNAVAILABLE
        assert result.reason_code == f"{prefix}_platform_unsupported"
        assert result.error_code == "platform_unsupported"
    assert host.calls["screen"] == 0
    assert host.calls["accessibility"] == 0
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "platform_unsupported"


@pytest.mark.asyncio
async def test_missing_runtime_root_is_mcp_unhealthy():
    host = FakeHost(runtime_root=None)

    evaluation = await ReadinessEvaluator(host.dependencies()).evaluate()
    overall = aggregate_status(evaluation.checks)

    runtime = evaluation.checks[CapabilityKind.MCP_HEALTH]
    assert runtime.state == CapabilityState.UNAVAILABLE
    assert runtime.reason_code == "runtime_health_runtime_root_missing"
    assert runtime.error_code == "mcp_healthcheck_failed"
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "mcp_healthcheck_failed"


@pytest.mark.asyncio
async def test_host_dependencies_off_macos_are_never_ready(tmp_path):
    install_runtime(tmp_path)
    dependencies = default_dependencies(str(tmp_path), runner_path="npx", platform="linux")

    evaluation = await ReadinessEvaluator(dependencies).evaluate()
    overall = aggregate_status(evaluation.checks)

    assert evaluation.checks[CapabilityKind.MCP_HEALTH].state == CapabilityState.OK
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "platform_unsupported"


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "darwin", reason="pyobjc may be installed on macOS")
async def test_host_dependencies_without_pyobjc_are_never_ready(tmp_path):
    install_runtime(tmp_path)
    dependencies = default_dependencies(str(tmp_path), runner_path="npx", platform="darwin")

    evaluation = await ReadinessEvaluator(dependencies).evaluate()
    overall = aggregate_status(evaluation.checks)

    assert evaluation.checks[CapabilityKind.SCREEN_CAPTURE].reason_code == (
        "screen_capture_probe_failed"
    )
    assert evaluation.checks[CapabilityKind.ACTION_EXECUTION].reason_code == (
        "action_execution_probe_failed"
    )
    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "screen_recording_status_unknown"



@pytest.mark.asyncio
async def test_unknown_screen_status_is_retried(fake_host, evaluator):
    fake_host.screen = "provisional"

    evaluation = await evaluator.evaluate()

    screen = evaluation.checks[CapabilityKind.SCREEN_CAPTURE]
    assert fake_host.calls["screen"] == DEFAULT_RETRY_POLICY[CapabilityKind.SCREEN_CAPTURE].max_attempts
    assert screen.reason_code == "screen_capture_unknown"
    assert screen.error_code == "screen_recording_status_unknown"


# =============================================================================
# Aggregation
# =============================================================================


def test_screen_denial_outranks_accessibility_denial():
    overall = aggregate_status(
        checks(
            screen=check(
                CapabilityKind.SCREEN_CAPTURE,
                CapabilityState.UNAVAILABLE,
                "screen_capture_permission_restricted",
            ),
            action=check(
                CapabilityKind.ACTION_EXECUTION,
                CapabilityState.UNAVAILABLE,
                "action_execution_permission_denied",
            ),
        )
    )

    assert overall.status == DesktopControlStatus.NEEDS_SCREEN_RECORDING_PERMISSION


def test_accessibility_denial_outranks_runtime_failure():
    overall = aggregate_status(
        checks(
            action=check(
                CapabilityKind.ACTION_EXECUTION,
                CapabilityState.UNAVAILABLE,
                "action_execution_permission_denied",
            ),
            runtime=check(
                CapabilityKind.MCP_HEALTH,
                CapabilityState.UNAVAILABLE,
                "runtime_health_runner_missing",
            ),
        )
    )

    assert overall.status == DesktopControlStatus.NEEDS_ACCESSIBILITY_PERMISSION
    assert overall.error_code == "accessibility_permission_required"


def test_non_denial_unavailable_is_mcp_unhealthy():
    overall = aggregate_status(
        checks(
            action=check(
                CapabilityKind.ACTION_EXECUTION,
                CapabilityState.UNAVAILABLE,
                "action_execution_probe_timeout",
                message="Action execution readiness check timed out.",
            )
        )
    )

    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "accessibility_status_unknown"
    assert "timed out" in overall.message


def test_ready_has_no_error_code():
    overall = aggregate_status(checks())

    assert overall.status == DesktopControlStatus.READY
    assert overall.error_code is None
    assert overall.remediation.title == "No action needed"


def test_degraded_permission_names_capability_once():
    overall = aggregate_status(
        checks(
            screen=check(
                CapabilityKind.SCREEN_CAPTURE,
                CapabilityState.DEGRADED,
                "screen_capture_unknown",
                message="Screen capture readiness could not be determined.",
            ),
            action=check(
                CapabilityKind.ACTION_EXECUTION,
                CapabilityState.DEGRADED,
                "action_execution_unknown",
                message="Action execution readiness could not be determined.",
            ),
        )
    )

    assert overall.status == DesktopControlStatus.READY
    assert ".;" not in overall.message
    assert overall.message == (
        "Desktop control is ready with reduced confidence ("
        "screen_capture: Screen capture readiness could not be determined; "
        "action_execution: Action execution readiness could not be determined)"
    )


def test_platform_unsupported_outranks_runtime_failure():
    overall = aggregate_status(
        checks(
            screen=check(
                CapabilityKind.SCREEN_CAPTURE,
                CapabilityState.UNAVAILABLE,
                "screen_capture_platform_unsupported",
            ),
            runtime=check(
                CapabilityKind.MCP_HEALTH,
                CapabilityState.UNAVAILABLE,
                "runtime_health_runner_missing",
            ),
        )
    )

    assert overall.status == DesktopControlStatus.MCP_UNHEALTHY
    assert overall.error_code == "platform_unsupported"


# =============================================================================
# Retry policy
# =============================================================================


def test_normalize_defaults():
    assert normalize_retry_policy() == DEFAULT_RETRY_POLICY


def test_normalize_partial_override_keeps_other_fields():
    policies = normalize_retry_policy({CapabilityKind.MCP_HEALTH: {"timeout_ms": 900}})

    assert policies[CapabilityKind.MCP_HEALTH] == RetryPolicy(timeout_ms=900, max_attempts=3)
    assert policies[CapabilityKind.SCREEN_CAPTURE] == DEFAULT_RETRY_POLICY[CapabilityKind.SCREEN_CAPTURE]


def test_normalize_floors_and_clamps():
    policies = normalize_retry_policy(
        {"action_execution": {"timeout_ms": 250.9, "max_attempts": 0}}
    )

    assert policies[CapabilityKind.ACTION_EXECUTION] == RetryPolicy(timeout_ms=250, max_attempts=1)


def test_normalize_accepts_policy_objects():
    policy = RetryPolicy(timeout_ms=50, max_attempts=5)

    assert normalize_retry_policy({"screen_capture": policy})[CapabilityKind.SCREEN_CAPTURE] == policy


@pytest.mark.parametrize(
    "overrides",
    [
        {"keyboard": {"timeout_ms": 10}},
        {"screen_capture": {"timeout_ms": "soon"}},
        {"screen_capture": {"max_attempts": float("nan")}},
    ],
)
def test_normalize_rejects_malformed(overrides):
    with pytest.raises(ValueError):
        normalize_retry_policy(overrides)
