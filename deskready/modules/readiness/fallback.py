"""
Synthesized snapshots for when no real evaluation result is available.

Every capability carries the same error code and the cause, so callers can
rely on the snapshot shape without special-casing failures.
"""

from datetime import datetime, timedelta
from typing import Optional

from .models import (
    CacheMetadata,
    CapabilityCheckResult,
    CapabilityKind,
    CapabilityState,
    DesktopControlStatus,
    ReadinessSnapshot,
)
from .evaluator import REMEDIATIONS


def error_message(error: BaseException) -> str:
    """Readable message for any exception, including message-less ones."""
    return str(error) or type(error).__name__


def unknown_snapshot(
    error_code: str,
    message: str,
    cause: str,
    checked_at: datetime,
    check_message: str = "Readiness check was not completed.",
    ttl_seconds: float = 0.0,
    expires_at: Optional[datetime] = None,
) -> ReadinessSnapshot:
    """
    Build a well-formed ``unknown`` snapshot.

    Args:
        error_code: Code placed on the snapshot and on every capability
        message: Top-level human message
        cause: Underlying error text, kept in each capability's details
        checked_at: When the failure was observed
        check_message: Message for each capability result
        ttl_seconds: Cache TTL to report
        expires_at: Cache expiry to report (defaults to checked_at + ttl)
    """
    checks = {
        capability: CapabilityCheckResult(
            capability=capability,
            state=CapabilityState.UNAVAILABLE,
            reason_code=error_code,
            message=check_message,
            error_code=error_code,
            details={"cause": cause, "error_code": error_code},
            attempts=[],
            checked_at=checked_at,
        )
        for capability in CapabilityKind
    }
    return ReadinessSnapshot(
        status=DesktopControlStatus.UNKNOWN,
        error_code=error_code,
        message=message,
        remediation=REMEDIATIONS[DesktopControlStatus.UNKNOWN],
        checks=checks,
        checked_at=checked_at,
        cache=CacheMetadata(
            ttl_seconds=ttl_seconds,
            expires_at=expires_at or checked_at + timedelta(seconds=ttl_seconds),
            from_cache=False,
        ),
    )
