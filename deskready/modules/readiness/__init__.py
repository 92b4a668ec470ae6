"""
Readiness Module - Black Box Interface

Purpose: Decide whether desktop control can safely run on this host
Interface: ReadinessEvaluator.evaluate(), aggregate_status(), unknown_snapshot()
Hidden: Probe timeouts and retries, reason code tables, host permission APIs

Probe failures never escape this module; they come back as classified
capability states.
"""

from .classifier import classify, is_denial_reason
from .evaluator import (
    ERROR_CODES,
    REMEDIATIONS,
    ReadinessEvaluation,
    ReadinessEvaluator,
    aggregate_status,
    normalize_retry_policy,
)
from .fallback import error_message, unknown_snapshot
from .host import default_dependencies
from .models import (
    DEFAULT_RETRY_POLICY,
    AttemptOutcome,
    CachedEntry,
    CacheMetadata,
    CapabilityCheckResult,
    CapabilityKind,
    CapabilityState,
    DesktopControlStatus,
    ProbeAttempt,
    ReadinessSnapshot,
    Remediation,
    RetryPolicy,
    StatusRequest,
)
from .probes import ProbeReading, ReadinessDependencies
from .retry import ProbeRun, run_with_retry

__all__ = [
    "ReadinessEvaluator",
    "ReadinessEvaluation",
    "ReadinessDependencies",
    "ProbeReading",
    "ProbeRun",
    "run_with_retry",
    "classify",
    "is_denial_reason",
    "aggregate_status",
    "normalize_retry_policy",
    "default_dependencies",
    "unknown_snapshot",
    "error_message",
    "ERROR_CODES",
    "REMEDIATIONS",
    "DEFAULT_RETRY_POLICY",
    "AttemptOutcome",
    "CachedEntry",
    "CacheMetadata",
    "CapabilityCheckResult",
    "CapabilityKind",
    "CapabilityState",
    "DesktopControlStatus",
    "ProbeAttempt",
    "ReadinessSnapshot",
    "Remediation",
    "RetryPolicy",
    "StatusRequest",
]
