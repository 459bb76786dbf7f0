"""
Small in-process TTL cache for frequently read reference data (domains, badges)
"""
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Thread-safe key/value cache with per-entry expiry"""

    def __init__(self, default_ttl: float = 300):
        self.default_ttl = default_ttl
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() > expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """Return cached value or compute, store and return it"""
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value, ttl)
        return value

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str):
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Shared cache for reference data
reference_cache = TTLCache()
