"""
Listing continuation cache.

Maps caller-visible continuation ids to the opaque cursors returned by the
blob store. Entries expire after a sliding time-to-live and are evicted
lazily when touched.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONTINUATION_TTL = 3600


class ContinuationCache:
    """
    Expiring, process-local map of continuation id -> storage cursor.

    Storage structure:
        {"ISIC:<id>": (cursor, expiry_timestamp)}

    Each set() restarts the entry's lifetime. Expired entries are dropped when
    their key is read, and set() sweeps the whole map at most once per TTL so
    abandoned listings do not accumulate. Keys are independent; the lock only
    guards the dictionary itself.
    """

    KEY_PREFIX = "ISIC:"

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_CONTINUATION_TTL,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry after its last refresh
            clock: Time source returning seconds (injectable for tests)
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._next_sweep = clock() + ttl_seconds
        self._lock = asyncio.Lock()

    def _key(self, continuation_id: str) -> str:
        return f"{self.KEY_PREFIX}{continuation_id}"

    async def get(self, continuation_id: str) -> Optional[Any]:
        """Return the cursor for continuation_id, or None if absent or expired."""
        key = self._key(continuation_id)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            cursor, expiry = entry
            if self._clock() > expiry:
                del self._entries[key]
                logger.debug(f"Continuation '{continuation_id}' expired")
                return None

            return cursor

    async def set(self, continuation_id: str, cursor: Any) -> None:
        """Store cursor under continuation_id with a fresh expiry."""
        now = self._clock()
        async with self._lock:
            if now >= self._next_sweep:
                self._evict_expired(now)
                self._next_sweep = now + self.ttl_seconds
            self._entries[self._key(continuation_id)] = (cursor, now + self.ttl_seconds)

    async def remove(self, continuation_id: str) -> bool:
        """Remove an entry. Returns True if one was present."""
        async with self._lock:
            return self._entries.pop(self._key(continuation_id), None) is not None

    async def purge_expired(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        now = self._clock()
        async with self._lock:
            return self._evict_expired(now)

    def _evict_expired(self, now: float) -> int:
        """Drop entries that expired before now. Caller holds the lock."""
        expired = [k for k, (_, expiry) in self._entries.items() if now > expiry]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired continuations")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
