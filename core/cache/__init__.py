"""
Cache Module

Clock-driven TTL cache used for slow-changing chain reads.
"""

from .ttl import CacheEntry, TTLCache

__all__ = [
    "CacheEntry",
    "TTLCache",
]
