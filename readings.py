"""
Sensor readings for the climate room: the Reading record, display-time
formatting in room local time, and the synthetic demo generator.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

import pandas as pd

import dashboard_config as cfg

# Wire column -> Reading attribute
READING_COLUMNS = {
    "suhu": "temperature",
    "kelembapan": "humidity",
    "cahaya": "light",
    "suara": "sound",
}

# Half-width of the uniform noise added around the baseline per metric
DEMO_NOISE = {
    "temperature": 0.3,
    "humidity": 1.0,
    "light": 5.0,
    "sound": 2.0,
}


@dataclass(frozen=True)
class Reading:
    id: int
    timestamp: datetime
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    light: Optional[float] = None
    sound: Optional[float] = None
    timestamp_local: str = ""

    def value(self, metric: str) -> Optional[float]:
        return getattr(self, metric)

    def as_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "timestamp_local": self.timestamp_local,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "light": self.light,
            "sound": self.sound,
        }


# ----------------------------- Utilities ----------------------------- #

def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string from the store into an aware datetime."""
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_local_time(instant: datetime, tz: str = cfg.DISPLAY_TIMEZONE) -> str:
    """Render `instant` as HH:MM:SS in the room's timezone.

    Naive datetimes are taken to be UTC, so the result does not depend on
    the host's local timezone.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz)).strftime("%H:%M:%S")


def _measurement(value: Any) -> Optional[float]:
    # Unknown stays unknown: never coerce to zero
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def reading_from_row(row: Dict[str, Any]) -> Reading:
    """Build a Reading from a `sensor_logs` row (REST result or push record)."""
    ts = parse_timestamp(row["timestamp"])
    values = {attr: _measurement(row.get(col)) for col, attr in READING_COLUMNS.items()}
    return Reading(
        id=int(row["id"]),
        timestamp=ts,
        timestamp_local=format_local_time(ts),
        **values,
    )


def readings_frame(readings: Iterable[Reading]) -> pd.DataFrame:
    """Tabular view of readings for charts and CSV export."""
    rows: List[Dict[str, Any]] = [r.as_row() for r in readings]
    columns = ["id", "timestamp", "timestamp_local", *cfg.METRICS.keys()]
    return pd.DataFrame(rows, columns=columns)


# ----------------------------- Demo data generator ----------------------------- #

def demo_reading(
    base: Any,
    last: Reading | None = None,
    rng: random.Random | Any = random,
    now: datetime | None = None,
) -> Reading:
    """Generate one synthetic reading scattered around the baseline targets."""

    def jitt(v: float, spread: float) -> float:
        return v + rng.uniform(-spread, spread)

    ts = now or datetime.now(timezone.utc)
    values = {
        metric: jitt(float(getattr(base, metric)), spread)
        for metric, spread in DEMO_NOISE.items()
    }
    return Reading(
        id=(last.id if last else 0) + 1,
        timestamp=ts,
        timestamp_local=format_local_time(ts),
        **values,
    )
