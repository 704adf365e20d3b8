"""
Live readings feed: the bounded, time-ordered buffer behind the charts.

Demo mode generates one reading per tick near the current setpoint.
Realtime mode bulk-loads the newest rows from the store and then appends
rows pushed by the store's insert subscription. Push records arrive on the
websocket thread and only go into a queue; the buffer itself is mutated
solely by start()/poll() on the caller's thread.
"""
from __future__ import annotations

import logging
import random
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Set

import dashboard_config as cfg
from readings import Reading, demo_reading, reading_from_row
from setpoints import Setpoint
from supabase_client import StoreError

logger = logging.getLogger(__name__)

DEMO = "Demo"
REALTIME = "Realtime"
MODES = (DEMO, REALTIME)


class LiveFeed:
    def __init__(
        self,
        mode: str,
        store: Any = None,
        baseline: Setpoint | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | Any = random,
        now: Optional[Callable[[], datetime]] = None,
        tick_s: float = cfg.DEMO_TICK_S,
        demo_capacity: int = cfg.DEMO_CAPACITY,
        bulk_limit: int = cfg.BULK_LOAD_LIMIT,
        live_capacity: int = cfg.LIVE_CAPACITY,
        table: str = cfg.READINGS_TABLE,
    ):
        if mode not in MODES:
            raise ValueError(f"Unknown feed mode {mode!r}, expected one of {MODES}")
        if mode == REALTIME and store is None:
            raise ValueError("Realtime mode needs a store")
        self.mode = mode
        self.store = store
        self.baseline = baseline or Setpoint()
        self.clock = clock
        self.rng = rng
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.tick_s = tick_s
        self.bulk_limit = bulk_limit
        self.table = table
        self.capacity = demo_capacity if mode == DEMO else live_capacity

        self._buffer: Deque[Reading] = deque(maxlen=self.capacity)
        self._ids: Set[int] = set()
        # Filled from the subscription thread, drained by poll(); records older
        # than one buffer's worth would be evicted on drain anyway
        self._queue: Deque[Dict[str, Any]] = deque(maxlen=self.capacity)
        self._subscription = None
        self._last_tick: float | None = None

        self.active = False
        self.loading = False
        self.last_error: str | None = None

    # ----------------------------- Lifecycle ----------------------------- #

    def start(self):
        if self.active:
            return
        self.active = True
        self.last_error = None
        if self.mode == DEMO:
            self._last_tick = self.clock()
            logger.info("Demo feed started (tick %.1fs, capacity %d)", self.tick_s, self.capacity)
            return

        self._clear()
        self._queue.clear()
        # Subscribe before loading so inserts made during the load are queued, not lost
        self._subscription = self.store.subscribe_inserts(self.table, self._enqueue)
        self._bulk_load()
        self._drain()
        logger.info("Realtime feed started with %d readings", len(self._buffer))

    def stop(self):
        self.active = False
        self._last_tick = None
        if self._subscription is not None:
            self._subscription.stop()
            self._subscription = None
        self._queue.clear()

    def set_baseline(self, setpoint: Setpoint):
        """Targets for future demo samples; history is left untouched."""
        self.baseline = setpoint

    # ----------------------------- Ingest ----------------------------- #

    def poll(self, now: float | None = None) -> int:
        """Apply due ticks or queued push records; returns readings appended."""
        if not self.active:
            return 0
        if self.mode == DEMO:
            return self._tick(self.clock() if now is None else now)
        return self._drain()

    def _tick(self, now: float) -> int:
        if self._last_tick is None:
            self._last_tick = now
            return 0
        due = int((now - self._last_tick) // self.tick_s)
        if due <= 0:
            return 0
        self._last_tick += due * self.tick_s
        for _ in range(min(due, self.capacity)):
            self._append(demo_reading(self.baseline, self.latest(), self.rng, now=self.now()))
        return min(due, self.capacity)

    def _enqueue(self, record: Dict[str, Any]):
        self._queue.append(record)

    def _drain(self) -> int:
        appended = 0
        while self._queue:
            record = self._queue.popleft()
            try:
                reading = reading_from_row(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed pushed reading: %s", e)
                continue
            if self._append(reading):
                appended += 1
        return appended

    def _bulk_load(self):
        self.loading = True
        try:
            rows = self.store.fetch_recent_readings(self.bulk_limit, table=self.table)
        except StoreError as e:
            logger.warning("Bulk load failed, no readings yet: %s", e)
            self.last_error = str(e)
            return
        finally:
            self.loading = False

        readings: List[Reading] = []
        for row in rows:
            try:
                readings.append(reading_from_row(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed reading row: %s", e)
        readings.sort(key=lambda r: r.timestamp)

        self._clear()
        for reading in readings[-self.capacity:]:
            self._append(reading)

    # ----------------------------- Buffer ----------------------------- #

    def _append(self, reading: Reading) -> bool:
        # At-least-once delivery: a known id is a duplicate
        if reading.id in self._ids:
            return False
        if len(self._buffer) == self.capacity:
            self._ids.discard(self._buffer[0].id)
        self._buffer.append(reading)
        self._ids.add(reading.id)
        return True

    def _clear(self):
        self._buffer.clear()
        self._ids.clear()

    def snapshot(self) -> List[Reading]:
        return list(self._buffer)

    def latest(self) -> Reading | None:
        return self._buffer[-1] if self._buffer else None

    def __len__(self) -> int:
        return len(self._buffer)
