"""
Runtime Configuration Module

Provides configuration loading and management for the distribution engine.
"""

from .runtime import (
    ApiConfig,
    ChainConfig,
    RuntimeConfig,
    StorageConfig,
    ValidationConfig,
    get_default_config,
    set_default_config,
)

__all__ = [
    "ApiConfig",
    "ChainConfig",
    "RuntimeConfig",
    "StorageConfig",
    "ValidationConfig",
    "get_default_config",
    "set_default_config",
]
