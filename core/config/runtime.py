"""
Runtime Configuration

Central configuration for validation limits, chain access, storage and the API.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from typing import Any, Optional
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


ENV_PREFIX = "MERKLEDROP_"

# Default upper bound on recipients per distribution. Proof length grows as
# ceil(log2(n)), commit-time storage grows with n.
DEFAULT_MAX_RECIPIENTS = 100_000


@dataclass
class ValidationConfig:
    """Business limits applied by the allocation validator."""
    max_recipients: int = DEFAULT_MAX_RECIPIENTS
    max_amount_per_recipient: Optional[int] = None
    allow_zero_address: bool = False


@dataclass
class ChainConfig:
    """Configuration for the chain-read collaborator."""
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    from_block: int = 0
    timeout: float = 30.0
    cache_ttl_seconds: float = 60.0


@dataclass
class StorageConfig:
    """Configuration for the distribution store."""
    backend: str = "memory"  # "memory" or "sqlite"
    db_path: str = "merkledrop.db"


@dataclass
class ApiConfig:
    """Configuration for the HTTP layer."""
    admin_api_key: Optional[str] = None
    lock_timeout_s: Optional[float] = 30.0


@dataclass
class RuntimeConfig:
    """
    Complete runtime configuration.

    Can be loaded from:
    - Environment variables
    - YAML file
    - Programmatic construction
    """
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = "INFO"
    extra: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def _get_env_overrides() -> dict[str, Any]:
        """
        Get configuration overrides from environment variables.

        This is the SINGLE source of truth for all env var reading.

        Supported variables:
        - MERKLEDROP_MAX_RECIPIENTS: Maximum recipients per distribution
        - MERKLEDROP_MAX_AMOUNT: Maximum amount per recipient (base units)
        - MERKLEDROP_ALLOW_ZERO_ADDRESS: Accept the zero address (true/false)
        - MERKLEDROP_RPC_URL: JSON-RPC endpoint for chain reads
        - MERKLEDROP_CONTRACT_ADDRESS: Distribution contract address
        - MERKLEDROP_FROM_BLOCK: First block to scan for claim events
        - MERKLEDROP_CHAIN_CACHE_TTL: TTL (seconds) for cached root/window reads
        - MERKLEDROP_STORAGE: Store backend (memory/sqlite)
        - MERKLEDROP_DB_PATH: SQLite database path
        - MERKLEDROP_ADMIN_API_KEY: API key required for admin endpoints
        - MERKLEDROP_LOG_LEVEL: Log level
        """
        overrides: dict[str, Any] = {}

        # Validation limits
        if os.getenv(f"{ENV_PREFIX}MAX_RECIPIENTS"):
            overrides.setdefault("validation", {})["max_recipients"] = int(
                os.getenv(f"{ENV_PREFIX}MAX_RECIPIENTS", "")
            )
        if os.getenv(f"{ENV_PREFIX}MAX_AMOUNT"):
            overrides.setdefault("validation", {})["max_amount_per_recipient"] = int(
                os.getenv(f"{ENV_PREFIX}MAX_AMOUNT", "")
            )
        if os.getenv(f"{ENV_PREFIX}ALLOW_ZERO_ADDRESS"):
            overrides.setdefault("validation", {})["allow_zero_address"] = (
                os.getenv(f"{ENV_PREFIX}ALLOW_ZERO_ADDRESS", "false").lower() == "true"
            )

        # Chain access
        if os.getenv(f"{ENV_PREFIX}RPC_URL"):
            overrides.setdefault("chain", {})["rpc_url"] = os.getenv(f"{ENV_PREFIX}RPC_URL")
        if os.getenv(f"{ENV_PREFIX}CONTRACT_ADDRESS"):
            overrides.setdefault("chain", {})["contract_address"] = os.getenv(
                f"{ENV_PREFIX}CONTRACT_ADDRESS"
            )
        if os.getenv(f"{ENV_PREFIX}FROM_BLOCK"):
            overrides.setdefault("chain", {})["from_block"] = int(
                os.getenv(f"{ENV_PREFIX}FROM_BLOCK", "0")
            )
        if os.getenv(f"{ENV_PREFIX}CHAIN_CACHE_TTL"):
            overrides.setdefault("chain", {})["cache_ttl_seconds"] = float(
                os.getenv(f"{ENV_PREFIX}CHAIN_CACHE_TTL", "60")
            )

        # Storage
        if os.getenv(f"{ENV_PREFIX}STORAGE"):
            overrides.setdefault("storage", {})["backend"] = os.getenv(f"{ENV_PREFIX}STORAGE")
        if os.getenv(f"{ENV_PREFIX}DB_PATH"):
            overrides.setdefault("storage", {})["db_path"] = os.getenv(f"{ENV_PREFIX}DB_PATH")

        # API
        if os.getenv(f"{ENV_PREFIX}ADMIN_API_KEY"):
            overrides.setdefault("api", {})["admin_api_key"] = os.getenv(
                f"{ENV_PREFIX}ADMIN_API_KEY"
            )

        if os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
            overrides["log_level"] = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")

        return overrides

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """
        Load configuration purely from environment variables.

        Uses defaults for any values not specified in env vars.
        """
        return cls.from_dict(cls._get_env_overrides())

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RuntimeConfig":
        """Load configuration from a YAML file."""
        import yaml
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuntimeConfig":
        """Load configuration from a dictionary (supports partial data)."""
        validation_data = data.get("validation", {}) or {}
        chain_data = data.get("chain", {}) or {}
        storage_data = data.get("storage", {}) or {}
        api_data = data.get("api", {}) or {}

        return cls(
            validation=ValidationConfig(**validation_data),
            chain=ChainConfig(**chain_data),
            storage=StorageConfig(**storage_data),
            api=ApiConfig(**api_data),
            log_level=data.get("log_level", "INFO"),
            extra=data.get("extra", {}),
        )

    def with_env_overrides(self) -> "RuntimeConfig":
        """
        Return a new config with environment variable overrides applied.

        This allows loading from a config file first, then overlaying env vars.
        """
        overrides = self._get_env_overrides()
        if not overrides:
            return self

        new_config = copy.deepcopy(self)

        for section in ("validation", "chain", "storage", "api"):
            if section in overrides:
                target = getattr(new_config, section)
                for key, value in overrides[section].items():
                    setattr(target, key, value)

        if "log_level" in overrides:
            new_config.log_level = overrides["log_level"]

        return new_config

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary. Secrets are masked."""
        return {
            "validation": {
                "max_recipients": self.validation.max_recipients,
                "max_amount_per_recipient": self.validation.max_amount_per_recipient,
                "allow_zero_address": self.validation.allow_zero_address,
            },
            "chain": {
                "rpc_url": self.chain.rpc_url,
                "contract_address": self.chain.contract_address,
                "from_block": self.chain.from_block,
                "timeout": self.chain.timeout,
                "cache_ttl_seconds": self.chain.cache_ttl_seconds,
            },
            "storage": {
                "backend": self.storage.backend,
                "db_path": self.storage.db_path,
            },
            "api": {
                "admin_api_key": "***" if self.api.admin_api_key else None,
                "lock_timeout_s": self.api.lock_timeout_s,
            },
            "log_level": self.log_level,
            "extra": self.extra,
        }


# Global default configuration
_default_config: Optional[RuntimeConfig] = None


def get_default_config() -> RuntimeConfig:
    """Get the default runtime configuration."""
    global _default_config
    if _default_config is None:
        _default_config = RuntimeConfig.from_env()
    return _default_config


def set_default_config(config: RuntimeConfig) -> None:
    """Set the default runtime configuration."""
    global _default_config
    _default_config = config
