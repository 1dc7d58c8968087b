from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from .records import Record


class BlockHistory:
    """Thread-safe bounded backlog of raw (unfiltered) records.

    Kept sorted by height, oldest first, one record per height. Used as the
    backlog when the window is rebuilt for a different rule; once full, the
    oldest blocks fall off.
    """

    def __init__(self, capacity: int) -> None:
        self._buffer: Deque[Record] = deque(maxlen=capacity)
        self._lock = threading.RLock()

    def add(self, record: Record) -> None:
        """Append a block newer than everything held; use ``extend`` otherwise."""
        with self._lock:
            self._buffer.append(record)

    def extend(self, records: Iterable[Record]) -> None:
        """Merge a batch of any order into the backlog."""
        with self._lock:
            merged: Dict[int, Record] = {r.height: r for r in self._buffer}
            for record in records:
                merged.setdefault(record.height, record)
            ordered = sorted(merged.values(), key=lambda r: r.height)
            self._buffer = deque(ordered, maxlen=self._buffer.maxlen)

    def size(self) -> int:
        with self._lock:
            return len(self._buffer)

    def latest_height(self) -> Optional[int]:
        with self._lock:
            return self._buffer[-1].height if self._buffer else None

    def snapshot(self) -> List[Record]:
        with self._lock:
            return list(self._buffer)
