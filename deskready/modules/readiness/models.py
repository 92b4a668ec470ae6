"""
Deskready shared data models.

These models define the structure of all readiness data passed between
the evaluator, the cache and the bridge, and across the process boundary.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Enums


class CapabilityKind(str, Enum):
    """Capabilities checked before desktop control is attempted."""

    SCREEN_CAPTURE = "screen_capture"
    ACTION_EXECUTION = "action_execution"
    MCP_HEALTH = "mcp_health"


class CapabilityState(str, Enum):
    """Classified state of one capability, ordered by severity."""

    OK = "ok"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"

    @property
    def severity(self) -> int:
        return _STATE_SEVERITY[self]

    @classmethod
    def worst(cls, states) -> "CapabilityState":
        """Return the most severe state in ``states`` (OK when empty)."""
        return max(states, key=lambda s: s.severity, default=cls.OK)


_STATE_SEVERITY = {
    CapabilityState.OK: 0,
    CapabilityState.DEGRADED: 1,
    CapabilityState.UNAVAILABLE: 2,
}


class AttemptOutcome(str, Enum):
    """Outcome of a single probe attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    ERROR = "error"


class DesktopControlStatus(str, Enum):
    """Overall readiness status derived from the three capability states."""

    READY = "ready"
    NEEDS_SCREEN_RECORDING_PERMISSION = "needs_screen_recording_permission"
    NEEDS_ACCESSIBILITY_PERMISSION = "needs_accessibility_permission"
    MCP_UNHEALTHY = "mcp_unhealthy"
    UNKNOWN = "unknown"


# Policy


class RetryPolicy(BaseModel):
    """Per-capability timeout and attempt budget."""

    model_config = ConfigDict(frozen=True)

    timeout_ms: int = Field(..., ge=1, description="Bound on a single attempt")
    max_attempts: int = Field(..., ge=1, description="Maximum number of attempts")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


DEFAULT_RETRY_POLICY: Dict[CapabilityKind, RetryPolicy] = {
    CapabilityKind.SCREEN_CAPTURE: RetryPolicy(timeout_ms=200, max_attempts=2),
    CapabilityKind.ACTION_EXECUTION: RetryPolicy(timeout_ms=200, max_attempts=2),
    CapabilityKind.MCP_HEALTH: RetryPolicy(timeout_ms=400, max_attempts=3),
}


# Evaluation results


class ProbeAttempt(BaseModel):
    """One attempt of a capability probe."""

    model_config = ConfigDict(frozen=True)

    attempt: int = Field(..., ge=1, description="1-based attempt ordinal")
    outcome: AttemptOutcome
    duration_ms: int = Field(default=0, ge=0)
    detail: Optional[Any] = Field(None, description="Raw reading or error text")


class CapabilityCheckResult(BaseModel):
    """Classified result for one capability."""

    model_config = ConfigDict(frozen=True)

    capability: CapabilityKind
    state: CapabilityState
    reason_code: str
    message: str
    error_code: Optional[str] = Field(None, description="Set when the capability blocks or degrades")
    details: Optional[Dict[str, Any]] = None
    attempts: List[ProbeAttempt] = Field(default_factory=list)
    retry_policy: Optional[RetryPolicy] = None
    checked_at: datetime

    @field_validator("attempts")
    @classmethod
    def validate_attempt_ordinals(cls, v):
        """Attempt ordinals must be exactly 1..n."""
        for index, attempt in enumerate(v, start=1):
            if attempt.attempt != index:
                raise ValueError(
                    f"Attempt ordinals must be contiguous from 1, got {attempt.attempt} at {index}"
                )
        return v


class Remediation(BaseModel):
    """User-facing fix-it instructions for an overall status."""

    model_config = ConfigDict(frozen=True)

    title: str
    steps: List[str] = Field(default_factory=list)
    system_settings_path: Optional[str] = None


class CacheMetadata(BaseModel):
    """How the snapshot was served."""

    model_config = ConfigDict(frozen=True)

    ttl_seconds: float = Field(..., ge=0)
    expires_at: datetime
    from_cache: bool = False


class ReadinessSnapshot(BaseModel):
    """Aggregated readiness of all capabilities at one point in time."""

    model_config = ConfigDict(frozen=True)

    status: DesktopControlStatus
    error_code: Optional[str] = None
    message: str
    remediation: Optional[Remediation] = None
    checks: Dict[CapabilityKind, CapabilityCheckResult]
    checked_at: datetime
    cache: CacheMetadata

    @field_validator("checks")
    @classmethod
    def validate_all_capabilities_present(cls, v):
        """Every capability must have a result."""
        missing = [kind.value for kind in CapabilityKind if kind not in v]
        if missing:
            raise ValueError(f"Missing capability checks: {', '.join(missing)}")
        return v

    def with_cache(self, cache: CacheMetadata) -> "ReadinessSnapshot":
        """Return a copy carrying different cache metadata."""
        return self.model_copy(update={"cache": cache})


class CachedEntry(BaseModel):
    """The one snapshot held by the readiness cache."""

    model_config = ConfigDict(frozen=True)

    snapshot: ReadinessSnapshot
    created_at: datetime


# Request Models (Bridge Input)


class StatusRequest(BaseModel):
    """Request for the current readiness snapshot."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    force_refresh: bool = Field(
        default=False,
        alias="forceRefresh",
        description="Bypass the cache and re-evaluate",
    )


__all__ = [
    # Enums
    "CapabilityKind",
    "CapabilityState",
    "AttemptOutcome",
    "DesktopControlStatus",
    # Policy
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    # Results
    "ProbeAttempt",
    "CapabilityCheckResult",
    "Remediation",
    "CacheMetadata",
    "ReadinessSnapshot",
    "CachedEntry",
    # Requests
    "StatusRequest",
]
