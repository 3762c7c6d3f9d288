# src/alphamarket/infrastructure/cache.py
import time
from typing import Dict, Any, Optional, Tuple


class InMemoryCache:
    """
    A simple in-memory cache with item-specific Time-To-Live (TTL) support.
    Process-local; each gateway owns its own instance.
    """

    def __init__(self, ttl_seconds: float = 60):
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._default_ttl_seconds = ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Retrieves an item if it exists and has not expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, expiry_timestamp = entry
        if time.time() > expiry_timestamp:
            del self._cache[key]
            return None

        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        self._cache[key] = (value, time.time() + ttl)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
