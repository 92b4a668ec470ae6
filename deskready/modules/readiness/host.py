"""
Default host dependencies for the readiness probes.

On macOS the permission queries go through pyobjc (installed with the
``macos`` extra). The probes only call them on macOS; when pyobjc is
missing there, the import error is recorded like any other probe error.
"""

import logging
import os
import shutil
import sys
from typing import Optional

from .probes import ReadinessDependencies, utc_now

logger = logging.getLogger("deskready.readiness")


def screen_media_access_status() -> str:
    """Screen recording permission as a media-access status string."""
    from Quartz import CGPreflightScreenCaptureAccess

    return "granted" if CGPreflightScreenCaptureAccess() else "denied"


def accessibility_trusted() -> bool:
    """Whether this process is a trusted accessibility client (no prompt)."""
    from ApplicationServices import AXIsProcessTrusted

    return bool(AXIsProcessTrusted())


def default_runner_path(configured: Optional[str] = None) -> str:
    """Configured runner, else ``npx`` from PATH, else the bare command name."""
    if configured:
        return configured
    return shutil.which("npx") or "npx"


def default_dependencies(
    runtime_root: Optional[str],
    runner_path: Optional[str] = None,
    platform: Optional[str] = None,
) -> ReadinessDependencies:
    """Build dependencies that query the real host."""
    resolved_root = os.path.abspath(runtime_root) if runtime_root else None
    resolved_runner = default_runner_path(runner_path)
    host_platform = platform or sys.platform
    logger.debug(
        f"Host readiness dependencies: platform={host_platform} "
        f"runtime_root={resolved_root} runner={resolved_runner}"
    )
    return ReadinessDependencies(
        get_screen_media_access_status=screen_media_access_status,
        is_accessibility_trusted=accessibility_trusted,
        get_runtime_root=lambda: resolved_root,
        get_runner_path=lambda: resolved_runner,
        file_exists=os.path.exists,
        clock=utc_now,
        platform=host_platform,
    )
