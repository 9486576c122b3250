from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from ..models import CacheEntry

DEFAULT_TTL_SEC = 60 * 60


class ResultCache:
    """Per-process map of subject id -> last extracted value.

    Entries go stale `ttl_sec` after they were written; stale entries are not
    swept, they are ignored by `get` and replaced by the next `put`. Only the
    event loop thread touches the map, so no locking is done.
    """

    def __init__(
        self,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_sec <= 0:
            raise ValueError(f"ttl_sec must be positive, got {ttl_sec}")
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, subject_id: str) -> Optional[CacheEntry]:
        entry = self._entries.get(subject_id)
        if entry is None:
            return None
        if self.clock() - entry.timestamp >= self.ttl_sec:
            return None
        return entry

    def put(self, subject_id: str, entry: CacheEntry) -> None:
        self._entries[subject_id] = entry

    def store(
        self,
        subject_id: str,
        value: int,
        source: Optional[str],
        *,
        debug_trace: Optional[Dict[str, Any]] = None,
        note: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            subject_id=subject_id,
            value=value,
            timestamp=self.clock(),
            source=source,
            debug_trace=debug_trace,
            note=note,
            status=status,
        )
        self.put(subject_id, entry)
        return entry

    def invalidate(self, subject_id: str) -> bool:
        return self._entries.pop(subject_id, None) is not None

    def __len__(self) -> int:
        return len(self._entries)
