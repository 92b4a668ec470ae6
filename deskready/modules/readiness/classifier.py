"""
Capability classifier.

Turns a ProbeRun into a capability state and a stable reason code.
Precedence when several conditions apply:

    permission denial > unsupported platform > missing runtime prerequisite
    > timeout > error > success

Exhausted timeouts and errors both block the capability.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from .models import AttemptOutcome, CapabilityKind, CapabilityState
from .probes import DENIAL_SIGNALS, PLATFORM_UNSUPPORTED
from .retry import ProbeRun

REASON_PREFIX = {
    CapabilityKind.SCREEN_CAPTURE: "screen_capture",
    CapabilityKind.ACTION_EXECUTION: "action_execution",
    CapabilityKind.MCP_HEALTH: "runtime_health",
}

CAPABILITY_LABELS = {
    CapabilityKind.SCREEN_CAPTURE: "Screen capture",
    CapabilityKind.ACTION_EXECUTION: "Action execution",
    CapabilityKind.MCP_HEALTH: "Runtime health",
}

_DENIAL_SUFFIX = {
    "denied": "permission_denied",
    "restricted": "permission_restricted",
    "not_determined": "permission_not_determined",
}

_DENIAL_MESSAGES = {
    (CapabilityKind.SCREEN_CAPTURE, "denied"): "Screen recording permission is denied.",
    (CapabilityKind.SCREEN_CAPTURE, "restricted"): (
        "Screen recording permission is restricted by system policy."
    ),
    (CapabilityKind.SCREEN_CAPTURE, "not_determined"): (
        "Screen recording permission has not been granted yet."
    ),
    (CapabilityKind.ACTION_EXECUTION, "denied"): (
        "Accessibility permission is required before desktop actions can run."
    ),
}

_PLATFORM_MESSAGES = {
    CapabilityKind.SCREEN_CAPTURE: "Screen recording permission checks are only available on macOS.",
    CapabilityKind.ACTION_EXECUTION: "Accessibility checks are only available on macOS.",
}

_OK_MESSAGES = {
    CapabilityKind.SCREEN_CAPTURE: "Screen recording permission is granted.",
    CapabilityKind.ACTION_EXECUTION: "Accessibility permission is granted.",
    CapabilityKind.MCP_HEALTH: "Desktop control runtime dependencies are present.",
}

DENIAL_REASON_CODES: FrozenSet[str] = frozenset(
    f"{prefix}_{suffix}"
    for prefix in REASON_PREFIX.values()
    for suffix in _DENIAL_SUFFIX.values()
)


@dataclass(frozen=True)
class Classification:
    state: CapabilityState
    reason_code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


def ok_reason_code(capability: CapabilityKind) -> str:
    return f"{REASON_PREFIX[capability]}_ok"


def timeout_reason_code(capability: CapabilityKind) -> str:
    return f"{REASON_PREFIX[capability]}_probe_timeout"


def failure_reason_code(capability: CapabilityKind) -> str:
    return f"{REASON_PREFIX[capability]}_probe_failed"


def unknown_reason_code(capability: CapabilityKind) -> str:
    return f"{REASON_PREFIX[capability]}_unknown"


def platform_unsupported_reason_code(capability: CapabilityKind) -> str:
    return f"{REASON_PREFIX[capability]}_platform_unsupported"


def is_platform_unsupported_reason(reason_code: str) -> bool:
    return reason_code.endswith("_platform_unsupported")


def is_denial_reason(reason_code: str) -> bool:
    """True when the reason code records an explicit permission refusal."""
    return reason_code in DENIAL_REASON_CODES


def _structural(run: ProbeRun) -> Optional[Classification]:
    """Classify missing runtime prerequisites reported by the last reading."""
    reading = run.reading
    if reading is None or run.capability is not CapabilityKind.MCP_HEALTH:
        return None

    missing_core = list(reading.details.get("missing_core_entrypoints") or [])
    missing_support = list(reading.details.get("missing_support_entrypoints") or [])
    runner_missing = bool(reading.details.get("runner_missing"))
    root_missing = bool(reading.details.get("runtime_root_missing"))

    issues = []
    if root_missing:
        issues.append("Runtime root is not configured")
    if runner_missing:
        issues.append(f"MCP runner is missing: {reading.details.get('runner_path')}")
    if missing_core:
        issues.append(f"{len(missing_core)} core MCP entrypoint(s) missing")
    if missing_support:
        issues.append(f"{len(missing_support)} support MCP entrypoint(s) missing")

    details = dict(reading.details, issues=issues)

    if root_missing or runner_missing or missing_core:
        if root_missing:
            reason = "runtime_health_runtime_root_missing"
        elif runner_missing and missing_core:
            reason = "runtime_health_runner_and_core_missing"
        elif runner_missing:
            reason = "runtime_health_runner_missing"
        else:
            reason = "runtime_health_missing_core_entrypoints"
        return Classification(
            CapabilityState.UNAVAILABLE,
            reason,
            "Desktop control runtime dependencies are missing.",
            details,
        )

    if missing_support:
        return Classification(
            CapabilityState.DEGRADED,
            "runtime_health_missing_support_entrypoints",
            "Desktop control runtime is partially degraded.",
            details,
        )

    return None


def classify(run: ProbeRun) -> Classification:
    """Classify one capability run. Pure; never raises for probe outcomes."""
    capability = run.capability
    prefix = REASON_PREFIX[capability]
    label = CAPABILITY_LABELS[capability]
    reading = run.reading

    if reading is not None and reading.signal in DENIAL_SIGNALS:
        return Classification(
            CapabilityState.UNAVAILABLE,
            f"{prefix}_{_DENIAL_SUFFIX[reading.signal]}",
            _DENIAL_MESSAGES.get(
                (capability, reading.signal), f"{label} permission is not granted."
            ),
            dict(reading.details),
        )

    if reading is not None and reading.signal == PLATFORM_UNSUPPORTED:
        return Classification(
            CapabilityState.UNAVAILABLE,
            platform_unsupported_reason_code(capability),
            _PLATFORM_MESSAGES.get(
                capability, f"{label} checks are not supported on this platform."
            ),
            dict(reading.details),
        )

    structural = _structural(run)
    if structural is not None:
        return structural

    outcome = run.final_outcome
    if outcome is AttemptOutcome.TIMEOUT:
        return Classification(
            CapabilityState.UNAVAILABLE,
            timeout_reason_code(capability),
            f"{label} readiness check timed out.",
            {"cause": run.last_error},
        )

    if outcome is AttemptOutcome.ERROR or reading is None:
        return Classification(
            CapabilityState.UNAVAILABLE,
            failure_reason_code(capability),
            f"{label} readiness check failed.",
            {"cause": run.last_error},
        )

    if reading.ok:
        return Classification(
            CapabilityState.OK,
            ok_reason_code(capability),
            _OK_MESSAGES[capability],
            dict(reading.details),
        )

    return Classification(
        CapabilityState.DEGRADED,
        unknown_reason_code(capability),
        f"{label} readiness could not be determined.",
        dict(reading.details),
    )
