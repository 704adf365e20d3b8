"""Operator setpoints: the single target record and its sync with the store."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import dashboard_config as cfg
from supabase_client import StoreError

logger = logging.getLogger(__name__)

# Setpoint attribute -> wire column
SETPOINT_COLUMNS = {
    "temperature": "suhu_target",
    "humidity": "kelembapan_target",
    "light": "cahaya_target",
    "sound": "suara_target",
}

SAVE_FAILED_MESSAGE = "Gagal menyimpan setpoint!"


@dataclass(frozen=True)
class Setpoint:
    temperature: float = cfg.DEFAULT_SETPOINT["temperature"]
    humidity: float = cfg.DEFAULT_SETPOINT["humidity"]
    light: float = cfg.DEFAULT_SETPOINT["light"]
    sound: float = cfg.DEFAULT_SETPOINT["sound"]

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Setpoint":
        # Null or non-numeric columns fall back to that target's default
        values = {}
        for attr, col in SETPOINT_COLUMNS.items():
            value = row.get(col)
            try:
                values[attr] = float(value)
            except (TypeError, ValueError):
                if value is not None:
                    logger.warning("Ignoring non-numeric %s=%r", col, value)
                values[attr] = cfg.DEFAULT_SETPOINT[attr]
        return cls(**values)

    def to_row(self, setpoint_id: int, saved_at: datetime) -> Dict[str, Any]:
        row: Dict[str, Any] = {"id": setpoint_id}
        for attr, col in SETPOINT_COLUMNS.items():
            row[col] = getattr(self, attr)
        row["updated_at"] = saved_at.isoformat()
        return row

    def clamped(self) -> "Setpoint":
        values = {}
        for attr, value in asdict(self).items():
            lo, hi, _step = cfg.SETPOINT_RANGES[attr]
            values[attr] = min(max(value, lo), hi)
        return Setpoint(**values)


class SetpointStore:
    """In-memory owner of the setpoint, loaded once and saved on request.

    Load failures keep the defaults and are only logged. Save failures are
    reported once through `notify`; the in-memory targets never change on
    save, whatever the outcome.
    """

    def __init__(
        self,
        store: Any,
        notify: Optional[Callable[[str], None]] = None,
        setpoint_id: int = cfg.SETPOINT_ID,
        table: str = cfg.SETPOINT_TABLE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.notify = notify
        self.setpoint_id = setpoint_id
        self.table = table
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.setpoint = Setpoint()
        self.saving = False
        self.on_change: Optional[Callable[[Setpoint], None]] = None

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self.setpoint)

    def load(self) -> Setpoint:
        if self.store is None:
            return self.setpoint
        try:
            row = self.store.fetch_setpoint(self.setpoint_id, table=self.table)
        except StoreError as e:
            logger.warning("Setpoint load failed, keeping defaults: %s", e)
            return self.setpoint
        if row is None:
            logger.info("No setpoint record %s, using defaults", self.setpoint_id)
            return self.setpoint
        self.setpoint = Setpoint.from_row(row).clamped()
        self._changed()
        return self.setpoint

    def update(self, **targets: float) -> Setpoint:
        unknown = set(targets) - set(SETPOINT_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown setpoint target(s): {sorted(unknown)}")
        updated = replace(self.setpoint, **targets).clamped()
        if updated != self.setpoint:
            self.setpoint = updated
            self._changed()
        return self.setpoint

    def save(self) -> bool:
        if self.store is None:
            logger.error("Setpoint save requested without a store")
            self._notify_failure()
            return False
        self.saving = True
        try:
            row = self.setpoint.to_row(self.setpoint_id, self.clock())
            self.store.upsert_setpoint(row, table=self.table)
        except StoreError as e:
            logger.error("Setpoint save failed: %s", e)
            self._notify_failure()
            return False
        finally:
            self.saving = False
        logger.info("Setpoint saved: %s", self.setpoint)
        self._changed()
        return True

    def _notify_failure(self):
        if self.notify is not None:
            self.notify(SAVE_FAILED_MESSAGE)
