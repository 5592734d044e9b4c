"""
Module 09C - CLI Configuration

Configuration for the Merkledrop CLI.
Supports environment variables and configuration files.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


# Environment variable prefix
ENV_PREFIX = "MERKLEDROP_"


@dataclass
class CLIConfig:
    """Main CLI configuration."""

    # Amount scaling applied when --decimals is not given
    default_decimals: int | None = None

    # Validation
    max_recipients: int = 100_000
    allow_zero_address: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # Output
    default_output_format: str = "human"  # "human" or "json"


def load_config_from_env() -> CLIConfig:
    """Load configuration from environment variables."""
    config = CLIConfig()

    if os.getenv(f"{ENV_PREFIX}DECIMALS"):
        config.default_decimals = int(os.getenv(f"{ENV_PREFIX}DECIMALS", "0"))
    if os.getenv(f"{ENV_PREFIX}MAX_RECIPIENTS"):
        config.max_recipients = int(os.getenv(f"{ENV_PREFIX}MAX_RECIPIENTS", "100000"))
    if os.getenv(f"{ENV_PREFIX}ALLOW_ZERO_ADDRESS"):
        config.allow_zero_address = os.getenv(f"{ENV_PREFIX}ALLOW_ZERO_ADDRESS", "false").lower() == "true"

    # Logging
    config.log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO")
    config.log_file = os.getenv(f"{ENV_PREFIX}LOG_FILE")

    return config


def load_config_from_file(path: Path) -> CLIConfig:
    """Load configuration from a JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    config = CLIConfig()
    config.default_decimals = data.get("default_decimals", config.default_decimals)

    validation = data.get("validation", {})
    config.max_recipients = validation.get("max_recipients", config.max_recipients)
    config.allow_zero_address = validation.get("allow_zero_address", config.allow_zero_address)

    config.log_level = data.get("log_level", config.log_level)
    config.log_file = data.get("log_file", config.log_file)
    config.default_output_format = data.get("default_output_format", config.default_output_format)

    return config


def load_config(config_path: Path | None = None) -> CLIConfig:
    """
    Load configuration from file and/or environment.

    Environment variables override file settings.

    Args:
        config_path: Optional path to config file

    Returns:
        Merged configuration
    """
    config = CLIConfig()

    if config_path and config_path.exists():
        config = load_config_from_file(config_path)

    default_paths = [
        Path.cwd() / "merkledrop.json",
        Path.cwd() / ".merkledrop.json",
        Path.home() / ".config" / "merkledrop" / "config.json",
    ]

    if config_path is None:
        for default_path in default_paths:
            if default_path.exists():
                config = load_config_from_file(default_path)
                break

    env_config = load_config_from_env()

    # Env takes precedence
    if os.getenv(f"{ENV_PREFIX}DECIMALS"):
        config.default_decimals = env_config.default_decimals
    if os.getenv(f"{ENV_PREFIX}MAX_RECIPIENTS"):
        config.max_recipients = env_config.max_recipients
    if os.getenv(f"{ENV_PREFIX}ALLOW_ZERO_ADDRESS"):
        config.allow_zero_address = env_config.allow_zero_address
    if os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
        config.log_level = env_config.log_level
    if os.getenv(f"{ENV_PREFIX}LOG_FILE"):
        config.log_file = env_config.log_file

    return config


def get_default_config_template() -> str:
    """Get a template configuration file."""
    return """{
  "default_decimals": null,
  "validation": {
    "max_recipients": 100000,
    "allow_zero_address": false
  },
  "log_level": "INFO",
  "log_file": null,
  "default_output_format": "human"
}
"""
