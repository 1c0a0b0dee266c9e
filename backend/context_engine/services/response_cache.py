"""In-process response cache with TTL expiry and insertion-order eviction."""
import hashlib
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from context_engine.exceptions import ConfigurationError
from context_engine.models.retrieval import CacheEntry
from context_engine.utils.logger import logger
from context_engine.utils.metrics import CACHE_EVICTIONS, CACHE_HITS, CACHE_MISSES


DEFAULT_ERROR_MARKERS = ("error", "Error")


class ResponseCache:
    """
    Memoizes generated responses keyed by query, model and provider.

    When full, the entry inserted earliest is evicted. Reads do not change
    an entry's position, so this approximates LRU rather than implementing it.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 1000,
        min_payload_length: int = 50,
        error_markers: Tuple[str, ...] = DEFAULT_ERROR_MARKERS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Age after which an entry is treated as absent
            max_entries: Maximum number of stored entries
            min_payload_length: Payloads shorter than this are not cached
            error_markers: Payloads containing any of these are not cached
            clock: Time source returning seconds

        Raises:
            ConfigurationError: If ttl_seconds or max_entries is not positive
        """
        if ttl_seconds <= 0:
            raise ConfigurationError(f"Cache TTL must be positive, got {ttl_seconds}")
        if max_entries <= 0:
            raise ConfigurationError(f"Cache size must be positive, got {max_entries}")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.min_payload_length = min_payload_length
        self.error_markers = error_markers
        self.clock = clock

        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(query: str, model: str, provider: str) -> str:
        normalized = query.lower().strip()
        return hashlib.sha256(f"{normalized}-{model}-{provider}".encode("utf-8")).hexdigest()

    def get(self, query: str, model: str, provider: str) -> Optional[str]:
        """
        Look up a cached response.

        Returns:
            The cached payload, or None on a miss, an expired entry or a
            malformed entry
        """
        key = self.make_key(query, model, provider)

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                CACHE_MISSES.inc()
                return None

            if not isinstance(entry, CacheEntry) or not isinstance(entry.payload, str):
                del self._entries[key]
                CACHE_MISSES.inc()
                logger.warning("Discarded malformed cache entry")
                return None

            if self._is_expired(entry):
                del self._entries[key]
                CACHE_MISSES.inc()
                CACHE_EVICTIONS.labels(reason="ttl").inc()
                return None

        CACHE_HITS.inc()
        logger.info(f"Cache hit for query: {query[:50]}...", extra={"cache_hit": True})
        return entry.payload

    def set(self, query: str, model: str, provider: str, payload: str) -> bool:
        """
        Store a response.

        Short payloads and payloads carrying an error marker are skipped.

        Returns:
            True if the payload was stored
        """
        if len(payload) < self.min_payload_length:
            return False
        if any(marker in payload for marker in self.error_markers):
            return False

        key = self.make_key(query, model, provider)
        entry = CacheEntry(
            key=key,
            payload=payload,
            created_at=self.clock(),
            model=model,
            provider=provider,
        )

        with self._lock:
            if key in self._entries:
                # Re-inserting moves the key to the newest position
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                oldest_key = next(iter(self._entries))
                del self._entries[oldest_key]
                CACHE_EVICTIONS.labels(reason="capacity").inc()
            self._entries[key] = entry

        logger.info(f"Cached response for query: {query[:50]}...")
        return True

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
            for key in expired:
                del self._entries[key]

        if expired:
            CACHE_EVICTIONS.labels(reason="ttl").inc(len(expired))
            logger.info(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, float]:
        with self._lock:
            size = len(self._entries)
        return {"size": size, "max_size": self.max_entries, "ttl": self.ttl_seconds}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.created_at > self.ttl_seconds
