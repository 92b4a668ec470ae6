"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol

from deskready.modules.readiness import CapabilityKind


@dataclass
class ReadinessConfig:
    """Readiness evaluation configuration."""
    cache_ttl_seconds: float
    runtime_root: str
    runner_path: Optional[str]
    retry_policy: Dict[str, Dict[str, float]] = field(default_factory=dict)


@dataclass
class APIConfig:
    """API configuration."""
    host: str
    port: int
    log_level: str


@dataclass
class StorageConfig:
    """Cache storage configuration."""
    redis_url: Optional[str]

    @property
    def use_redis(self) -> bool:
        """Check if the cache should live in Redis."""
        return bool(self.redis_url)


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_readiness_config(self) -> ReadinessConfig:
        """Get readiness configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_storage_config(self) -> StorageConfig:
        """Get storage configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def _get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.environ.get(name)
        return value if value not in (None, "") else default

    def _number(self, name: str, default: str) -> float:
        raw = self._get(name, default)
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be a number, got {raw!r}")

    def get_readiness_config(self) -> ReadinessConfig:
        """Get readiness configuration from environment variables."""
        ttl = self._number("DESKREADY_CACHE_TTL", "5")
        if ttl < 0:
            raise ValueError(f"DESKREADY_CACHE_TTL must not be negative, got {ttl}")

        # e.g. DESKREADY_MCP_HEALTH_TIMEOUT_MS=800, DESKREADY_SCREEN_CAPTURE_MAX_ATTEMPTS=3
        retry_policy: Dict[str, Dict[str, float]] = {}
        for capability in CapabilityKind:
            prefix = f"DESKREADY_{capability.value.upper()}"
            override = {}
            if self._get(f"{prefix}_TIMEOUT_MS") is not None:
                override["timeout_ms"] = self._number(f"{prefix}_TIMEOUT_MS", "0")
            if self._get(f"{prefix}_MAX_ATTEMPTS") is not None:
                override["max_attempts"] = self._number(f"{prefix}_MAX_ATTEMPTS", "0")
            if override:
                retry_policy[capability.value] = override

        return ReadinessConfig(
            cache_ttl_seconds=ttl,
            runtime_root=self._get("DESKREADY_RUNTIME_ROOT", "skills"),
            runner_path=self._get("DESKREADY_RUNNER_PATH"),
            retry_policy=retry_policy,
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        port = self._number("DESKREADY_API_PORT", "8787")
        if not port.is_integer() or not 1 <= port <= 65535:
            raise ValueError(f"DESKREADY_API_PORT must be a port number, got {port}")
        return APIConfig(
            host=self._get("DESKREADY_API_HOST", "127.0.0.1"),
            port=int(port),
            log_level=self._get("DESKREADY_LOG_LEVEL", "INFO").upper(),
        )

    def get_storage_config(self) -> StorageConfig:
        """Get storage configuration from environment variables."""
        return StorageConfig(redis_url=self._get("DESKREADY_REDIS_URL"))
