"""Bounded FIFO cache of raw completion results keyed by request signature."""
from __future__ import annotations

import hashlib
import itertools
import threading
from dataclasses import dataclass
from typing import Any

from skdaemon import config


def make_signature(byte_offset: int, file_path: str, cache_key: str) -> str:
    """Deterministic cache key for one completion position in one buffer revision."""
    h = hashlib.sha1()
    for part in (str(byte_offset), file_path, cache_key):
        h.update(part.encode("utf-8"))
        h.update(b"\0")
    return h.hexdigest()


@dataclass
class CacheEntry:
    signature: str
    payload: Any
    insertion_order: int


class CompletionCache:
    """At most `capacity` entries; the oldest insertion is evicted first.

    Hits do not refresh an entry, and overwriting a signature keeps its
    original insertion order.
    """

    def __init__(self, capacity: int | None = None):
        self.capacity = max(1, int(capacity if capacity is not None else config.CACHE_CAPACITY))
        self._entries: dict[str, CacheEntry] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def get(self, signature: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(signature)
            return entry.payload if entry else None

    def put(self, signature: str, payload: Any) -> None:
        with self._lock:
            existing = self._entries.get(signature)
            if existing is not None:
                existing.payload = payload
                return
            self._entries[signature] = CacheEntry(
                signature=signature,
                payload=payload,
                insertion_order=next(self._counter),
            )
            if len(self._entries) > self.capacity:
                oldest = min(self._entries.values(), key=lambda e: e.insertion_order)
                del self._entries[oldest.signature]

    def signatures(self) -> list[str]:
        with self._lock:
            return [e.signature for e in sorted(self._entries.values(), key=lambda e: e.insertion_order)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
