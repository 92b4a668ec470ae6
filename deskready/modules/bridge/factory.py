"""
Readiness Factory following Black Box Design principles.

This factory:
- Constructs the evaluator, cache and request table from configuration
- Wires host dependencies and optional Redis storage together
- Returns only the request table (the bridge's server surface)
"""

import logging
from typing import Any, Optional

from ...config.provider import ConfigProvider
from ..cache import ReadinessCache, RedisSnapshotSlot
from ..readiness import ReadinessDependencies, ReadinessEvaluator, default_dependencies
from .requests import ReadinessRequestTable

logger = logging.getLogger(__name__)


class ReadinessFactory:
    """
    Factory for building the readiness stack.

    This is the composition root that:
    - Creates the evaluator with host or injected dependencies
    - Chooses the cache slot (memory or Redis)
    - Returns the request table
    """

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        redis_client: Optional[Any] = None,
        dependencies: Optional[ReadinessDependencies] = None,
    ) -> ReadinessRequestTable:
        """
        Build the complete readiness stack.

        Args:
            config_provider: Configuration provider
            redis_client: Optional Redis client for the cache slot
            dependencies: Host queries (defaults to the real host)

        Returns:
            ReadinessRequestTable serving the readiness operation
        """
        readiness_config = config_provider.get_readiness_config()

        if dependencies is None:
            dependencies = default_dependencies(
                readiness_config.runtime_root, readiness_config.runner_path
            )

        evaluator = ReadinessEvaluator(dependencies, retry_policy=readiness_config.retry_policy)

        slot = None
        if redis_client is not None:
            logger.info("Building readiness cache backed by Redis")
            slot = RedisSnapshotSlot(redis_client, readiness_config.cache_ttl_seconds)
        else:
            logger.info("Building readiness cache in memory")

        cache = ReadinessCache(
            evaluator,
            ttl_seconds=readiness_config.cache_ttl_seconds,
            slot=slot,
        )
        return ReadinessRequestTable(cache)
