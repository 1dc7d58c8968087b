from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

from ..config import AppConfig
from .buffers import BlockHistory
from .grid import Grid, project, slide
from .records import PARITY, SIZE, Record, parse_record
from .rules import Rule, is_aligned
from .window import Window


logger = logging.getLogger(__name__)

KEYS = (PARITY, SIZE)


class BeadFeed:
    """Single owner of the window and the bead grids for the active rule.

    Incoming records and rule switches are serialized through one lock, so a
    switch never interleaves with an insertion. Each accepted record slides
    both grids (parity and size); a rule switch rebuilds the window from the
    raw history and re-projects the grids.
    """

    def __init__(self, config: AppConfig, rule: Optional[Rule] = None) -> None:
        self.config = config
        self._lock = threading.RLock()
        self._rule: Rule = rule or config.runtime.active_rule()
        self._cols = config.runtime.grid.cols
        self._history = BlockHistory(capacity=config.runtime.feed.history_size)
        self._window = Window(capacity=self._cols * self._rows_for(self._rule))
        self._grids: Dict[str, Grid] = {}
        self._reproject()

    def _rows_for(self, rule: Rule) -> int:
        if rule.bead_rows and rule.bead_rows > 0:
            return rule.bead_rows
        return self.config.runtime.grid.rows

    def _reproject(self) -> None:
        records = self._window.snapshot()
        rows = self._rows_for(self._rule)
        self._grids = {key: project(records, key, self._cols, rows) for key in KEYS}

    @property
    def rule(self) -> Rule:
        with self._lock:
            return self._rule

    @property
    def history(self) -> BlockHistory:
        return self._history

    def load(self, backlog: Iterable[Record]) -> None:
        """Initial load: remember the backlog and rebuild for the active rule."""
        with self._lock:
            self._history.extend(backlog)
            self._window.rebuild(self._history.snapshot(), self._rule)
            self._reproject()
            logger.info(
                "Feed loaded",
                extra={"rule": self._rule.id, "window": len(self._window), "history": self._history.size()},
            )

    def ingest(self, record: Record) -> bool:
        with self._lock:
            latest = self._history.latest_height()
            if latest is None or record.height > latest:
                self._history.add(record)
            if not is_aligned(record.height, self._rule):
                return False
            if not self._window.insert(record):
                return False
            self._grids = {key: slide(grid, record, key) for key, grid in self._grids.items()}
            return True

    def ingest_payload(self, payload: Any) -> bool:
        record = parse_record(payload)
        if record is None:
            return False
        return self.ingest(record)

    def switch_rule(self, rule: Rule, backlog: Optional[Iterable[Record]] = None) -> None:
        """Make ``rule`` active, rebuilding from ``backlog`` or the local history."""
        with self._lock:
            source = self._history.snapshot() if backlog is None else list(backlog)
            self._rule = rule
            self._window.rebuild(source, rule, capacity=self._cols * self._rows_for(rule))
            self._reproject()
            logger.info("Rule switched", extra={"rule": rule.id, "window": len(self._window)})

    def snapshot(self) -> Tuple[Record, ...]:
        return self._window.snapshot()

    def grid(self, key: str = PARITY) -> Grid:
        with self._lock:
            return [list(column) for column in self._grids[key]]
