"""
Retry policy executor for capability probes.

Attempts run strictly one after another. Each attempt is bounded by the
policy timeout; an attempt that does not settle in time is abandoned and
its late result is ignored. The executor never raises for probe failures,
it records them as attempts and hands the whole run to the classifier.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Union

from .models import AttemptOutcome, CapabilityKind, ProbeAttempt, RetryPolicy
from .probes import ProbeReading, call

logger = logging.getLogger("deskready.readiness")

Probe = Callable[[], Union[ProbeReading, Awaitable[ProbeReading]]]


@dataclass
class ProbeRun:
    """Every attempt made for one capability plus the last settled reading."""

    capability: CapabilityKind
    policy: RetryPolicy
    attempts: List[ProbeAttempt] = field(default_factory=list)
    reading: Optional[ProbeReading] = None
    last_error: Optional[str] = None

    @property
    def final_outcome(self) -> Optional[AttemptOutcome]:
        if not self.attempts:
            return None
        return self.attempts[-1].outcome


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _discard_late_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome so an abandoned probe never logs "exception was never retrieved".
    if not task.cancelled():
        task.exception()


def _abandon(task: "asyncio.Future[Any]") -> None:
    task.add_done_callback(_discard_late_result)
    task.cancel()


async def _invoke(probe: Probe) -> ProbeReading:
    return await call(probe)


async def run_with_retry(
    capability: CapabilityKind,
    probe: Probe,
    policy: RetryPolicy,
) -> ProbeRun:
    """
    Run ``probe`` under ``policy``.

    Args:
        capability: Capability being probed (used for logging and messages)
        probe: Zero-argument callable returning a ProbeReading
        policy: Per-attempt timeout and attempt budget

    Returns:
        ProbeRun with attempts numbered 1..n, n <= policy.max_attempts
    """
    run = ProbeRun(capability=capability, policy=policy)

    for number in range(1, policy.max_attempts + 1):
        started = time.monotonic()
        task = asyncio.ensure_future(_invoke(probe))
        try:
            done, _ = await asyncio.wait({task}, timeout=policy.timeout_seconds)
        except asyncio.CancelledError:
            _abandon(task)
            raise
        duration_ms = max(0, int((time.monotonic() - started) * 1000))

        if not done:
            _abandon(task)
            run.last_error = (
                f"{capability.value} readiness probe timed out after {policy.timeout_ms}ms"
            )
            run.attempts.append(
                ProbeAttempt(
                    attempt=number,
                    outcome=AttemptOutcome.TIMEOUT,
                    duration_ms=duration_ms,
                    detail=run.last_error,
                )
            )
            logger.debug(f"{capability.value} attempt {number}/{policy.max_attempts} timed out")
            continue

        if task.cancelled():
            error: Optional[BaseException] = asyncio.CancelledError("probe was cancelled")
        else:
            error = task.exception()

        if error is not None:
            run.last_error = _error_text(error)
            run.attempts.append(
                ProbeAttempt(
                    attempt=number,
                    outcome=AttemptOutcome.ERROR,
                    duration_ms=duration_ms,
                    detail=run.last_error,
                )
            )
            logger.debug(
                f"{capability.value} attempt {number}/{policy.max_attempts} failed: {run.last_error}"
            )
            continue

        reading = task.result()
        run.reading = reading
        run.attempts.append(
            ProbeAttempt(
                attempt=number,
                outcome=AttemptOutcome.SUCCESS if reading.ok else AttemptOutcome.FAILURE,
                duration_ms=duration_ms,
                detail=reading.to_dict(),
            )
        )

        if reading.retryable and number < policy.max_attempts:
            continue
        return run

    if run.final_outcome in (AttemptOutcome.TIMEOUT, AttemptOutcome.ERROR):
        logger.warning(
            f"{capability.value} probe exhausted {policy.max_attempts} attempt(s): {run.last_error}"
        )
    return run
