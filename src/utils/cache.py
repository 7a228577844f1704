"""In-memory TTL cache with an injected clock.

Entries are stored as whole objects with an absolute expiry time. A value is
either returned in full or not at all; there is no per-field invalidation.
The clock is injectable so staleness boundaries can be tested without
sleeping.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from src.utils.logger import logger

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default wall clock (timezone-aware UTC)."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: datetime
    expires_at: datetime


class TTLCache(Generic[K, V]):
    """Key -> {value, expires_at} cache.

    An entry is valid while `now < expires_at`; at or past the expiry it is
    treated as absent and evicted on the next lookup.
    """

    def __init__(self, ttl: timedelta, clock: Clock = utc_now, name: str = "cache") -> None:
        """Initialize the cache.

        Args:
            ttl: Time-to-live of every entry, measured from when it was stored.
            clock: Zero-argument callable returning the current time.
            name: Label used in log messages.

        Raises:
            ValueError: If ttl is not positive.
        """
        if ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got: {ttl}")
        self.ttl = ttl
        self.clock = clock
        self.name = name
        self._entries: Dict[K, CacheEntry[V]] = {}
        self.hits = 0
        self.misses = 0

    def _is_expired(self, entry: CacheEntry[V], now: datetime) -> bool:
        return now >= entry.expires_at

    def get(self, key: K) -> Optional[V]:
        """Return the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._is_expired(entry, self.clock()):
            del self._entries[key]
            self.misses += 1
            logger.debug(f"{self.name}: entry for {key!r} expired")
            return None
        self.hits += 1
        return entry.value

    def put(self, key: K, value: V) -> None:
        """Store a value, replacing any previous entry for the key."""
        now = self.clock()
        self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=now + self.ttl)

    async def get_or_compute(self, key: K, compute: Callable[[], Awaitable[V]]) -> V:
        """Return the cached value or await `compute()` and store its result.

        The computed value is stored only after `compute()` completes, so a
        failing or cancelled computation leaves the cache untouched.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await compute()
        self.put(key, value)
        return value

    def invalidate(self, key: K) -> bool:
        """Drop one entry. Returns True if something was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> dict:
        """Cache statistics for diagnostics."""
        now = self.clock()
        expired = sum(1 for entry in self._entries.values() if self._is_expired(entry, now))
        return {
            "total_entries": len(self._entries),
            "expired_entries": expired,
            "valid_entries": len(self._entries) - expired,
            "ttl_seconds": self.ttl.total_seconds(),
            "hits": self.hits,
            "misses": self.misses,
        }

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not self._is_expired(entry, self.clock())

    def __len__(self) -> int:
        return len(self._entries)
