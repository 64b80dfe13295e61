"""Process-wide cache of reference face features.

Entries are keyed by workflow id and remember the reference path they were
derived from, so a reader can tell whether an entry still matches the
persisted reference. Every workflow id has its own lock while someone holds
or waits for it; callers hold it around any read-extract-write sequence for
that id.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from facegate.features import FaceFeatures


class _KeyLock:
    """Lock of one workflow id and the number of threads holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


@dataclass(frozen=True)
class CachedReference:
    """Features together with the reference path they came from."""

    image_path: str
    features: FaceFeatures


class ReferenceFeatureCache:
    """Thread-safe map of workflow id -> :class:`CachedReference`.

    ``_lock`` guards the two dicts; the per-key locks serialize the slower
    extract-and-store sequences of a single workflow without blocking
    other workflows. A key lock is dropped once its last user releases it,
    so only workflows currently in use hold one.

    Example:
        >>> cache = ReferenceFeatureCache()
        >>> with cache.lock_for("w1"):
        ...     if cache.get("w1") is None:
        ...         cache.put("w1", path, features)
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CachedReference] = {}
        self._key_locks: Dict[str, _KeyLock] = {}
        self._lock = threading.Lock()

    @contextmanager
    def lock_for(self, workflow_id: str) -> Iterator[None]:
        """Hold the lock of one workflow id."""
        with self._lock:
            key_lock = self._key_locks.get(workflow_id)
            if key_lock is None:
                key_lock = self._key_locks[workflow_id] = _KeyLock()
            key_lock.users += 1

        try:
            with key_lock.lock:
                yield
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[workflow_id]

    def active_locks(self) -> int:
        """Number of workflow ids whose lock is currently held or awaited."""
        with self._lock:
            return len(self._key_locks)

    def get(self, workflow_id: str) -> Optional[CachedReference]:
        with self._lock:
            return self._entries.get(workflow_id)

    def put(self, workflow_id: str, image_path: str, features: FaceFeatures) -> None:
        with self._lock:
            self._entries[workflow_id] = CachedReference(str(image_path), features)

    def invalidate(self, workflow_id: str) -> None:
        with self._lock:
            self._entries.pop(workflow_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, workflow_id: object) -> bool:
        with self._lock:
            return workflow_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        """String representation."""
        return f"ReferenceFeatureCache(entries={len(self)})"
