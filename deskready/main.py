#!/usr/bin/env python3
"""
Deskready - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Serves the readiness bridge over HTTP

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import redis.asyncio as redis
from fastapi import Body, FastAPI, HTTPException, Query, Request
from pydantic import ValidationError

from deskready import __version__
from deskready.config.provider import ConfigProvider, EnvConfigProvider
from deskready.modules.bridge import (
    DESKTOP_CONTROL_CHANNELS,
    ReadinessFactory,
    ReadinessRequestTable,
    UnknownRequestError,
)

logger = logging.getLogger("deskready.api")


async def get_redis_client(redis_url: str) -> redis.Redis:
    """Create Redis client from configuration."""
    return redis.from_url(redis_url, encoding="utf-8", decode_responses=True)


def create_app(
    request_table: Optional[ReadinessRequestTable] = None,
    config_provider: Optional[ConfigProvider] = None,
) -> FastAPI:
    """
    Create the Deskready API application.

    Args:
        request_table: Pre-built request table (tests); built at startup if None
        config_provider: Configuration source (environment by default)
    """
    config_provider = config_provider or EnvConfigProvider()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - initialize and cleanup resources.
        """
        logger.info("Starting Deskready API...")

        redis_client = None
        if app.state.request_table is None:
            storage_config = config_provider.get_storage_config()
            if storage_config.use_redis:
                redis_client = await get_redis_client(storage_config.redis_url)
            app.state.request_table = ReadinessFactory.build(config_provider, redis_client)

        logger.info(
            f"Readiness bridge serving: {', '.join(app.state.request_table.request_names)}"
        )

        yield

        logger.info("Shutting down Deskready API...")
        if redis_client:
            await redis_client.close()
        logger.info("Deskready API shutdown complete")

    app = FastAPI(
        title="Deskready API",
        description="Deskready - Desktop control readiness checks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.request_table = request_table

    def get_table(request: Request) -> ReadinessRequestTable:
        table = request.app.state.request_table
        if table is None:
            raise HTTPException(503, "Service not initialized")
        return table

    async def dispatch(request: Request, request_name: str, payload: Dict[str, Any]):
        table = get_table(request)
        try:
            return await table.dispatch(request_name, payload)
        except UnknownRequestError as e:
            raise HTTPException(404, str(e))
        except ValidationError as e:
            raise HTTPException(422, e.errors(include_url=False, include_context=False))

    @app.get("/health")
    async def health(request: Request):
        """
        Liveness check.

        Returns:
            200: Service status and cache state
        """
        table = request.app.state.request_table
        return {
            "status": "healthy" if table is not None else "starting",
            "version": __version__,
            "cache": await table.cache.describe() if table is not None else None,
        }

    @app.post("/bridge/{request_name}")
    async def bridge_request(
        request_name: str,
        request: Request,
        payload: Optional[Dict[str, Any]] = Body(default=None),
    ):
        """
        Invoke a bridge request by name (canonical or alias).

        Returns:
            200: Readiness snapshot
            404: Unknown request name
            422: Malformed payload
        """
        return await dispatch(request, request_name, payload or {})

    @app.get("/desktop-control/status")
    @app.get("/desktop-control/get-status")
    async def desktop_control_status(
        request: Request,
        force_refresh: bool = Query(False, description="Bypass the cache"),
    ):
        """
        Current desktop control readiness snapshot.

        Returns:
            200: Readiness snapshot
        """
        return await dispatch(
            request, DESKTOP_CONTROL_CHANNELS["get_status"], {"force_refresh": force_refresh}
        )

    return app


app = create_app()
