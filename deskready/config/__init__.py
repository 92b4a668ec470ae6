"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: EnvConfigProvider.get_readiness_config(), get_api_config(), get_storage_config()
Hidden: Config sources, validation logic, environment parsing

Malformed values raise ValueError at startup.
"""

from .provider import APIConfig, ConfigProvider, EnvConfigProvider, ReadinessConfig, StorageConfig

__all__ = [
    "ConfigProvider",
    "EnvConfigProvider",
    "ReadinessConfig",
    "APIConfig",
    "StorageConfig",
]
