"""Process-lifetime, size-bounded metadata cache.

Used by `providers.transfer` to remember remote descriptors (for example the
durable URL of an already-uploaded local file). Entries are never invalidated;
the least recently used entry is evicted once `max_entries` is reached.

Concurrency:
    Guarded by a lock. Concurrent population of one key is tolerated
    (last write wins); values for a key are idempotent.
"""

import threading
from collections import OrderedDict
from typing import Any


class MetadataCache:
    """Bounded LRU mapping owned by a single orchestrator instance."""

    def __init__(self, max_entries: int = 256) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._entries:
                return default
            self._entries.move_to_end(key)
            return self._entries[key]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
