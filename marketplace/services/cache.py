# marketplace/services/cache.py
"""Id -> snapshot cache in front of the task and user stores.

Entries are plain dict snapshots, never live ORM objects, so a cached value
can be served from any request. Whoever mutates an entity calls
``invalidate`` after the commit; nothing is evicted implicitly except by TTL
and size.
"""
from __future__ import annotations
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Hashable, Optional

log = logging.getLogger(__name__)


class EntityCache:
    def __init__(self, ttl: float = 300, max_entries: int = 1024, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[tuple[str, Hashable], tuple[dict, float]]" = OrderedDict()

    def get(self, kind: str, entity_id) -> Optional[dict]:
        key = (kind, entity_id)
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            snapshot, expires_at = hit
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return dict(snapshot)

    def put(self, kind: str, entity_id, snapshot: dict) -> None:
        key = (kind, entity_id)
        with self._lock:
            self._entries[key] = (dict(snapshot), self._clock() + self.ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, kind: str, entity_id) -> None:
        with self._lock:
            if self._entries.pop((kind, entity_id), None) is not None:
                log.debug("cache invalidated %s:%s", kind, entity_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key) -> bool:
        kind, entity_id = key
        return self.get(kind, entity_id) is not None
