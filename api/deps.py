"""
Module 09D - API Dependencies

Dependency injection for the API.
Builds the store, manager and chain reconciler from runtime configuration
once per process; tests swap them through set_services().
"""

from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Depends, Header

from api.errors import ServiceUnavailableError, UnauthorizedError
from core.chain import CachedChainReader, ChainReader, JsonRpcChainReader
from core.config.runtime import RuntimeConfig
from distributions import (
    ChainReconciler,
    DistributionLocks,
    DistributionManager,
    DistributionStore,
    InMemoryDistributionStore,
    SQLiteDistributionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide collaborators shared by the routes."""
    config: RuntimeConfig
    store: DistributionStore
    manager: DistributionManager
    reconciler: Optional[ChainReconciler] = None


def _load_runtime_config() -> RuntimeConfig:
    """Load RuntimeConfig from config file, then overlay environment variables.

    Search order for config file:
      1. ./merkledrop.json
      2. ./.merkledrop.json
      3. ~/.config/merkledrop/config.json

    Environment variables ALWAYS override config file values.
    The .env file is loaded automatically by core.config.runtime on import.
    """
    search_paths = [
        Path.cwd() / "merkledrop.json",
        Path.cwd() / ".merkledrop.json",
        Path.home() / ".config" / "merkledrop" / "config.json",
    ]

    config: RuntimeConfig | None = None

    for path in search_paths:
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                logger.info(f"Loaded config from {path}")
                config = RuntimeConfig.from_dict(data)
                break
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to parse {path}: {e}")

    if config is None:
        # No config file found, start with defaults
        config = RuntimeConfig()

    # Always apply environment variable overrides
    return config.with_env_overrides()


def build_store(config: RuntimeConfig) -> DistributionStore:
    if config.storage.backend == "sqlite":
        logger.info(f"Using SQLite store at {config.storage.db_path}")
        return SQLiteDistributionStore(config.storage.db_path)
    return InMemoryDistributionStore()


def build_chain_reader(config: RuntimeConfig) -> Optional[ChainReader]:
    """JSON-RPC reader wrapped in a TTL cache, or None when chain access is not configured."""
    chain = config.chain
    if not chain.rpc_url or not chain.contract_address:
        logger.warning("No RPC URL or contract address configured; sync is disabled")
        return None
    reader = JsonRpcChainReader(
        chain.rpc_url,
        chain.contract_address,
        from_block=chain.from_block,
        timeout=chain.timeout,
    )
    return CachedChainReader(reader, ttl_seconds=chain.cache_ttl_seconds)


def build_services(config: RuntimeConfig) -> Services:
    store = build_store(config)
    locks = DistributionLocks(default_timeout=config.api.lock_timeout_s)
    manager = DistributionManager.from_config(store, config.validation, locks=locks)
    reader = build_chain_reader(config)
    reconciler = ChainReconciler(store, reader, locks=locks) if reader is not None else None
    return Services(config=config, store=store, manager=manager, reconciler=reconciler)


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services(_load_runtime_config())
    return _services


def set_services(services: Optional[Services]) -> None:
    """Replace the process-wide services (None resets to lazy construction)."""
    global _services
    _services = services


def get_manager(services: Services = Depends(get_services)) -> DistributionManager:
    return services.manager


def get_reconciler(services: Services = Depends(get_services)) -> ChainReconciler:
    if services.reconciler is None:
        raise ServiceUnavailableError(
            "Chain reconciliation is not configured",
            details={"required": ["MERKLEDROP_RPC_URL", "MERKLEDROP_CONTRACT_ADDRESS"]},
        )
    return services.reconciler


def require_admin(
    x_api_key: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> None:
    """Admin endpoints require X-API-Key when an admin key is configured."""
    expected = services.config.api.admin_api_key
    if not expected:
        return
    if not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise UnauthorizedError()
