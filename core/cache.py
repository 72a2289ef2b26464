# server/core/cache.py
"""
Caching utilities
"""
from typing import Any, Dict, Optional

from cachetools import TTLCache

class CacheManager:
    """In-memory response cache; every entry shares the cache-wide TTL"""

    def __init__(self, max_size: int = 1000, ttl: int = 900):
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        value = self._cache.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._cache),
            "max_size": self._cache.maxsize,
            "ttl_seconds": self._cache.ttl,
            "hits": self.hits,
            "misses": self.misses,
        }
