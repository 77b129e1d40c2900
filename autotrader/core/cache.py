"""
TTL Cache - key -> value with explicit expiry.

Advisory only: a miss (absent or expired) always falls through to the
loader, and a loader failure is never cached.

Usage:
    from autotrader.core import TTLCache

    cache = TTLCache(ttl=3600)
    report = await cache.get_or_load(address, lambda: client.fetch(address))
"""
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

V = TypeVar('V')


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Small generic TTL cache with an injectable clock."""

    def __init__(
        self,
        ttl: float,
        max_size: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[Hashable, _Entry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.value

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None):
        if len(self._entries) >= self.max_size and key not in self._entries:
            self.purge_expired()
            if len(self._entries) >= self.max_size:
                # Drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k].expires_at)
                del self._entries[oldest]
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        self._entries[key] = _Entry(value=value, expires_at=expires_at)

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[Optional[V]]],
    ) -> Optional[V]:
        """Cached value, or the loader's result (None results are not cached)."""
        value = self.get(key)
        if value is not None:
            return value
        value = await loader()
        if value is not None:
            self.set(key, value)
        return value

    def delete(self, key: Hashable):
        self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            'size': len(self._entries),
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total if total else 0.0,
        }
