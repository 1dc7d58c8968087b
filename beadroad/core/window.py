from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Iterable, Optional, Set, Tuple

from .records import Record
from .rules import Rule, is_aligned


logger = logging.getLogger(__name__)


class Window:
    """Capacity-bounded collection of rule-aligned records, newest first.

    Invariants held after every public call:

    - at most ``capacity`` records;
    - heights strictly descending (index 0 is the newest block);
    - no two records share a height.

    Alignment to the active rule is the caller's contract for ``insert``;
    ``ingest`` and ``rebuild`` check it themselves.
    """

    def __init__(self, capacity: int) -> None:
        self._capacity: int = max(1, capacity)
        self._records: Deque[Record] = deque()
        self._heights: Set[int] = set()
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, height: object) -> bool:
        with self._lock:
            return height in self._heights

    def head(self) -> Optional[Record]:
        with self._lock:
            return self._records[0] if self._records else None

    def insert(self, record: Record) -> bool:
        """Place a newly observed record at the head; True if the window changed."""
        with self._lock:
            if record.height in self._heights:
                return False
            if self._records and record.height < self._records[0].height:
                logger.warning(
                    "Rejecting out-of-order record",
                    extra={"height": record.height, "head": self._records[0].height},
                )
                return False
            self._records.appendleft(record)
            self._heights.add(record.height)
            while len(self._records) > self._capacity:
                evicted = self._records.pop()
                self._heights.discard(evicted.height)
            return True

    def ingest(self, record: Record, rule: Rule) -> bool:
        if not is_aligned(record.height, rule):
            return False
        return self.insert(record)

    def rebuild(self, backlog: Iterable[Record], rule: Rule, capacity: Optional[int] = None) -> None:
        """Replace the contents with the newest aligned records of ``backlog``."""
        unique = {}
        for record in backlog:
            if is_aligned(record.height, rule) and record.height not in unique:
                unique[record.height] = record
        ordered = sorted(unique.values(), key=lambda r: r.height, reverse=True)
        with self._lock:
            cap = self._capacity if capacity is None else max(1, capacity)
            newest = ordered[:cap]
            self._capacity = cap
            self._records = deque(newest)
            self._heights = {r.height for r in newest}
        logger.debug(
            "Window rebuilt",
            extra={"rule": rule.id, "size": len(newest), "capacity": cap},
        )

    def snapshot(self) -> Tuple[Record, ...]:
        with self._lock:
            return tuple(self._records)
