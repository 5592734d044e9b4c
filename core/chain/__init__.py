"""
Chain Read Module

Read-only access to on-chain distribution state.
"""

from .cached import CachedChainReader
from .reader import ChainReader
from .rpc import DistributionInfo, JsonRpcChainReader, JsonRpcError

__all__ = [
    "CachedChainReader",
    "ChainReader",
    "DistributionInfo",
    "JsonRpcChainReader",
    "JsonRpcError",
]
