"""TTL caches for analysis results and credential probes.

TTLCache is the generic expiring store; ResultCache lays the pipeline's key
namespaces on top of it:

    analysis:<image hash>                    AnalysisResult, positive results only
    credential:<fingerprint>                 bool, 1h if valid, 5min if invalid
    model-available:<model>:<fingerprint>    bool, 1h

Tests:
    - tests/unit/test_cache.py::TestTTLCache
    - tests/unit/test_cache.py::TestResultCache
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Stored value with its absolute expiry (clock seconds)."""

    value: Any
    expires_at: float


class TTLCache:
    """Bounded in-memory store whose entries expire independently.

    Entries are treated as absent once now > expires_at. When the store is
    full the oldest inserted entry is evicted.
    """

    def __init__(
        self,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Cache full, evicted {evicted}")
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup(self) -> int:
        """Purge expired entries, returning how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_entries,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }

    def __len__(self) -> int:
        return len(self._entries)


class ResultCache:
    """Namespaced view over a TTLCache used by the pipeline."""

    def __init__(self, store: TTLCache | None = None) -> None:
        self.store = store if store is not None else TTLCache()

    @staticmethod
    def analysis_key(image_hash: str) -> str:
        return f"analysis:{image_hash}"

    @staticmethod
    def credential_key(fingerprint: str) -> str:
        return f"credential:{fingerprint}"

    @staticmethod
    def model_available_key(model_id: str, fingerprint: str) -> str:
        return f"model-available:{model_id}:{fingerprint}"

    def get(self, key: str) -> Any | None:
        return self.store.get(key)

    def set(self, key: str, value: Any, ttl: float) -> None:
        self.store.set(key, value, ttl)

    def clear(self) -> None:
        self.store.clear()
