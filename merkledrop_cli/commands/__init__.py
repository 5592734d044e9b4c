"""
CLI command modules.
"""

from merkledrop_cli.commands import build, refresh, validate, verify

__all__ = ["build", "refresh", "validate", "verify"]
