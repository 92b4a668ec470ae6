"""
Readiness evaluator.

Runs the three capability pipelines, classifies each one and folds the
states into the overall desktop control status. The overall status is
always derived from the capability results by ``aggregate_status``.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Dict, Mapping, Optional, Union

from .classifier import classify, is_denial_reason, is_platform_unsupported_reason
from .models import (
    DEFAULT_RETRY_POLICY,
    CacheMetadata,
    CapabilityCheckResult,
    CapabilityKind,
    CapabilityState,
    DesktopControlStatus,
    ReadinessSnapshot,
    Remediation,
    RetryPolicy,
)
from .probes import PROBES, ReadinessDependencies
from .retry import run_with_retry

logger = logging.getLogger("deskready.readiness")

ERROR_CODES = {
    "SCREEN_RECORDING_PERMISSION_REQUIRED": "screen_recording_permission_required",
    "SCREEN_RECORDING_STATUS_UNKNOWN": "screen_recording_status_unknown",
    "ACCESSIBILITY_PERMISSION_REQUIRED": "accessibility_permission_required",
    "ACCESSIBILITY_STATUS_UNKNOWN": "accessibility_status_unknown",
    "MCP_HEALTHCHECK_FAILED": "mcp_healthcheck_failed",
    "MCP_HEALTH_DEGRADED": "mcp_health_degraded",
    "PLATFORM_UNSUPPORTED": "platform_unsupported",
    "PREFLIGHT_UNKNOWN": "desktop_control_preflight_unknown",
}

_UNAVAILABLE_ERROR_CODES = {
    CapabilityKind.SCREEN_CAPTURE: ERROR_CODES["SCREEN_RECORDING_STATUS_UNKNOWN"],
    CapabilityKind.ACTION_EXECUTION: ERROR_CODES["ACCESSIBILITY_STATUS_UNKNOWN"],
    CapabilityKind.MCP_HEALTH: ERROR_CODES["MCP_HEALTHCHECK_FAILED"],
}

_DENIAL_ERROR_CODES = {
    CapabilityKind.SCREEN_CAPTURE: ERROR_CODES["SCREEN_RECORDING_PERMISSION_REQUIRED"],
    CapabilityKind.ACTION_EXECUTION: ERROR_CODES["ACCESSIBILITY_PERMISSION_REQUIRED"],
}


def capability_error_code(
    capability: CapabilityKind, state: CapabilityState, reason_code: str
) -> Optional[str]:
    """Error code for a classified capability; None when it is ok."""
    if state is CapabilityState.OK:
        return None
    if is_denial_reason(reason_code) and capability in _DENIAL_ERROR_CODES:
        return _DENIAL_ERROR_CODES[capability]
    if is_platform_unsupported_reason(reason_code):
        return ERROR_CODES["PLATFORM_UNSUPPORTED"]
    if state is CapabilityState.UNAVAILABLE:
        return _UNAVAILABLE_ERROR_CODES[capability]
    if capability is CapabilityKind.MCP_HEALTH:
        return ERROR_CODES["MCP_HEALTH_DEGRADED"]
    return _UNAVAILABLE_ERROR_CODES[capability]


REMEDIATIONS: Dict[DesktopControlStatus, Remediation] = {
    DesktopControlStatus.READY: Remediation(
        title="No action needed",
        steps=["Desktop control dependencies are ready."],
    ),
    DesktopControlStatus.NEEDS_SCREEN_RECORDING_PERMISSION: Remediation(
        title="Allow Screen Recording",
        system_settings_path="System Settings > Privacy & Security > Screen Recording",
        steps=[
            "Open System Settings > Privacy & Security > Screen Recording.",
            "Enable permission for the desktop agent.",
            "Quit and reopen the desktop agent, then recheck status.",
        ],
    ),
    DesktopControlStatus.NEEDS_ACCESSIBILITY_PERMISSION: Remediation(
        title="Allow Accessibility",
        system_settings_path="System Settings > Privacy & Security > Accessibility",
        steps=[
            "Open System Settings > Privacy & Security > Accessibility.",
            "Enable permission for the desktop agent.",
            "Quit and reopen the desktop agent, then recheck status.",
        ],
    ),
    DesktopControlStatus.MCP_UNHEALTHY: Remediation(
        title="Repair desktop control runtime",
        steps=[
            "Restart the desktop agent.",
            "If the issue persists, reinstall or re-sync the runtime skills bundle.",
            "Run the status check again after restart.",
        ],
    ),
    DesktopControlStatus.UNKNOWN: Remediation(
        title="Retry readiness check",
        steps=[
            "Restart the desktop agent and run the status check again.",
            "If this keeps failing, collect logs and reinstall the app.",
        ],
    ),
}

PolicyOverride = Union[RetryPolicy, Mapping[str, Any]]


def _policy_value(raw: Any, field_name: str, capability: CapabilityKind) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValueError(
            f"Retry policy {field_name} for {capability.value} must be numeric, got {raw!r}"
        )
    if math.isnan(value):
        raise ValueError(f"Retry policy {field_name} for {capability.value} must not be NaN")
    return max(1, math.floor(value))


def normalize_retry_policy(
    overrides: Optional[Mapping[Union[CapabilityKind, str], PolicyOverride]] = None,
) -> Dict[CapabilityKind, RetryPolicy]:
    """
    Merge partial per-capability overrides onto the defaults.

    Values are floored to whole numbers and clamped to at least 1.

    Raises:
        ValueError: If a capability name or a value is malformed
    """
    overrides = overrides or {}
    known = {capability.value for capability in CapabilityKind}
    unknown = [str(key) for key in overrides if key not in known]
    if unknown:
        raise ValueError(f"Unknown capability in retry policy: {', '.join(unknown)}")

    policies = {}
    for capability in CapabilityKind:
        fallback = DEFAULT_RETRY_POLICY[capability]
        override = overrides.get(capability) or {}
        if isinstance(override, RetryPolicy):
            override = override.model_dump()
        policies[capability] = RetryPolicy(
            timeout_ms=_policy_value(
                override.get("timeout_ms", fallback.timeout_ms), "timeout_ms", capability
            ),
            max_attempts=_policy_value(
                override.get("max_attempts", fallback.max_attempts), "max_attempts", capability
            ),
        )
    return policies


@dataclass(frozen=True)
class OverallReadiness:
    status: DesktopControlStatus
    error_code: Optional[str]
    message: str
    remediation: Remediation


def _overall(
    status: DesktopControlStatus, error_code: Optional[str], message: str
) -> OverallReadiness:
    return OverallReadiness(status, error_code, message, REMEDIATIONS[status])


def aggregate_status(checks: Mapping[CapabilityKind, CapabilityCheckResult]) -> OverallReadiness:
    """
    Fold the three capability results into one overall status.

    Rules are evaluated in order, first match wins.
    """
    screen = checks[CapabilityKind.SCREEN_CAPTURE]
    action = checks[CapabilityKind.ACTION_EXECUTION]
    runtime = checks[CapabilityKind.MCP_HEALTH]

    if screen.state is CapabilityState.UNAVAILABLE and is_denial_reason(screen.reason_code):
        return _overall(
            DesktopControlStatus.NEEDS_SCREEN_RECORDING_PERMISSION,
            ERROR_CODES["SCREEN_RECORDING_PERMISSION_REQUIRED"],
            "Screen recording permission is required before taking screenshots.",
        )

    if action.state is CapabilityState.UNAVAILABLE and is_denial_reason(action.reason_code):
        return _overall(
            DesktopControlStatus.NEEDS_ACCESSIBILITY_PERMISSION,
            ERROR_CODES["ACCESSIBILITY_PERMISSION_REQUIRED"],
            "Accessibility permission is required before keyboard/mouse actions can run.",
        )

    for capability in CapabilityKind:
        check = checks[capability]
        if check.state is CapabilityState.UNAVAILABLE:
            return _overall(
                DesktopControlStatus.MCP_UNHEALTHY,
                capability_error_code(capability, check.state, check.reason_code),
                f"Desktop control is unavailable: {check.message}",
            )

    states = [check.state for check in checks.values()]
    if all(state is CapabilityState.OK for state in states):
        return _overall(DesktopControlStatus.READY, None, "Desktop control is ready.")

    if CapabilityState.worst(states) is CapabilityState.DEGRADED:
        if runtime.state is CapabilityState.DEGRADED:
            return _overall(
                DesktopControlStatus.MCP_UNHEALTHY,
                ERROR_CODES["MCP_HEALTH_DEGRADED"],
                f"Desktop control runtime is degraded: {runtime.message}",
            )
        degraded = "; ".join(
            f"{check.capability.value}: {check.message.rstrip('.')}"
            for check in checks.values()
            if check.state is CapabilityState.DEGRADED
        )
        return _overall(
            DesktopControlStatus.READY,
            None,
            f"Desktop control is ready with reduced confidence ({degraded})",
        )

    return _overall(
        DesktopControlStatus.UNKNOWN,
        ERROR_CODES["PREFLIGHT_UNKNOWN"],
        "Desktop control readiness could not be determined.",
    )


@dataclass(frozen=True)
class ReadinessEvaluation:
    """Result of one evaluation pass, before cache metadata is attached."""

    checks: Dict[CapabilityKind, CapabilityCheckResult]
    checked_at: datetime

    def to_snapshot(self, cache: CacheMetadata) -> ReadinessSnapshot:
        overall = aggregate_status(self.checks)
        return ReadinessSnapshot(
            status=overall.status,
            error_code=overall.error_code,
            message=overall.message,
            remediation=overall.remediation,
            checks=self.checks,
            checked_at=self.checked_at,
            cache=cache,
        )


class ReadinessEvaluator:
    """
    Evaluates desktop control readiness.

    Receives its host dependencies and retry policy at construction so the
    whole pipeline can be driven deterministically in tests.
    """

    def __init__(
        self,
        dependencies: ReadinessDependencies,
        retry_policy: Optional[Mapping[Union[CapabilityKind, str], PolicyOverride]] = None,
    ):
        """
        Initialize readiness evaluator.

        Args:
            dependencies: Host queries used by the probes
            retry_policy: Optional partial per-capability policy overrides
        """
        self.dependencies = dependencies
        self.retry_policy = normalize_retry_policy(retry_policy)

    @property
    def clock(self):
        return self.dependencies.clock

    async def evaluate_capability(self, capability: CapabilityKind) -> CapabilityCheckResult:
        """Run and classify a single capability."""
        probe = PROBES[capability]
        policy = self.retry_policy[capability]
        run = await run_with_retry(capability, partial(probe, self.dependencies), policy)
        classification = classify(run)

        logger.debug(
            f"{capability.value}: {classification.state.value} ({classification.reason_code}) "
            f"after {len(run.attempts)} attempt(s)"
        )
        return CapabilityCheckResult(
            capability=capability,
            state=classification.state,
            reason_code=classification.reason_code,
            message=classification.message,
            error_code=capability_error_code(
                capability, classification.state, classification.reason_code
            ),
            details=classification.details or None,
            attempts=run.attempts,
            retry_policy=policy,
            checked_at=self.clock(),
        )

    async def evaluate(self) -> ReadinessEvaluation:
        """Evaluate all capabilities concurrently."""
        capabilities = list(CapabilityKind)
        results = await asyncio.gather(
            *(self.evaluate_capability(capability) for capability in capabilities)
        )
        evaluation = ReadinessEvaluation(
            checks=dict(zip(capabilities, results)),
            checked_at=self.clock(),
        )
        logger.info(
            "Readiness evaluated: "
            + ", ".join(f"{k.value}={v.state.value}" for k, v in evaluation.checks.items())
        )
        return evaluation
