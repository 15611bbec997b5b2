"""
Deadswitch Storage
"""

from deadswitch.storage.cache import CacheEntry, CacheStore, MemoryCache, SqliteCache

__all__ = [
    "CacheEntry",
    "CacheStore",
    "MemoryCache",
    "SqliteCache",
]
