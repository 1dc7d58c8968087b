from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

import requests

from ..config import AppConfig
from ..core.feed import BeadFeed
from ..core.records import Record, parse_record
from ..utils.retry import with_retries


logger = logging.getLogger(__name__)

BLOCKS_PATH = "/api/blocks"


def parse_blocks_response(body: Any) -> List[Record]:
    """Extract valid records from a ``/api/blocks`` response or a bare list.

    Malformed entries are dropped, as is an envelope whose ``data`` is not a
    list; the result is newest first.
    """
    if isinstance(body, dict):
        if body.get("success") is False:
            return []
        items = body.get("data") or []
    else:
        items = body
    if not isinstance(items, list):
        logger.warning("Dropping malformed blocks response", extra={"data_type": type(items).__name__})
        return []
    records = [r for r in (parse_record(item) for item in items) if r is not None]
    return sorted(records, key=lambda r: r.height, reverse=True)


class BlockCollector:
    """Polls the block backend and feeds new records into a ``BeadFeed``.

    On start the newest ``history_size`` blocks are loaded as the backlog.
    Afterwards every poll asks for the newest ``poll_limit`` blocks and
    forwards those above the last seen height, oldest first, so the feed
    always observes non-decreasing heights. When more blocks arrived since
    the previous poll than one poll returns, the request is widened to cover
    the gap (bounded by ``history_size``).
    """

    def __init__(
        self,
        config: AppConfig,
        feed: BeadFeed,
        on_record: Optional[Callable[[Record], None]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.feed = feed
        self.on_record = on_record
        self._session = session
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_height: Optional[int] = None

    @property
    def last_height(self) -> Optional[int]:
        return self._last_height

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="BlockCollector", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "application/json", "User-Agent": "beadroad/0.1"})
        return self._session

    def fetch_blocks(self, limit: int) -> List[Record]:
        feed_cfg = self.config.runtime.feed
        params = {"limit": limit}
        url = f"{self.config.backend_url}{BLOCKS_PATH}"

        def _get() -> Any:
            resp = self._get_session().get(url, params=params, timeout=feed_cfg.network_timeout_sec)
            resp.raise_for_status()
            return resp.json()

        body = with_retries(
            _get,
            max_attempts=feed_cfg.max_retries,
            base_seconds=feed_cfg.backoff_base_sec,
            cap_seconds=feed_cfg.backoff_cap_sec,
            retry_on=(requests.RequestException, ValueError),
        )
        return parse_blocks_response(body)

    def load_backlog(self) -> int:
        records = self.fetch_blocks(self.config.runtime.feed.history_size)
        self.feed.load(records)
        if records:
            self._last_height = records[0].height
        return len(records)

    def _fetch_since_last(self) -> List[Record]:
        feed_cfg = self.config.runtime.feed
        records = self.fetch_blocks(feed_cfg.poll_limit)
        last = self._last_height
        if last is None or not records or records[-1].height <= last + 1:
            return records
        wanted = min(feed_cfg.history_size, records[0].height - last)
        if wanted > feed_cfg.poll_limit:
            records = self.fetch_blocks(wanted)
        if records and records[-1].height > last + 1:
            logger.warning(
                "Blocks missing from feed",
                extra={"first_missing": last + 1, "last_missing": records[-1].height - 1},
            )
        return records

    def poll_once(self) -> int:
        """Forward unseen blocks to the feed; returns how many were new."""
        records = self._fetch_since_last()
        fresh = [r for r in reversed(records) if self._last_height is None or r.height > self._last_height]
        for record in fresh:
            accepted = self.feed.ingest(record)
            self._last_height = record.height
            if accepted and self.on_record is not None:
                self.on_record(record)
        return len(fresh)

    def _run(self) -> None:
        interval = self.config.runtime.feed.poll_interval_sec
        loaded = False
        while not self._stop.is_set():
            try:
                if not loaded:
                    count = self.load_backlog()
                    loaded = True
                    logger.info("Backlog loaded", extra={"blocks": count})
                else:
                    self.poll_once()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Block poll failed", extra={"error": repr(exc)}, exc_info=True)
            self._stop.wait(timeout=interval)
