import random
import re
import time
from datetime import datetime, timedelta, timezone

import pytest

from readings import (
    DEMO_NOISE,
    Reading,
    demo_reading,
    format_local_time,
    parse_timestamp,
    reading_from_row,
    readings_frame,
)
from setpoints import Setpoint


def test_format_local_time_uses_wib():
    instant = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
    assert format_local_time(instant) == "07:00:00"


def test_format_local_time_independent_of_host_timezone(monkeypatch):
    instant = datetime(2024, 6, 30, 17, 59, 30, tzinfo=timezone.utc)
    results = set()
    for tz in ("UTC", "America/New_York", "Asia/Tokyo"):
        monkeypatch.setenv("TZ", tz)
        if hasattr(time, "tzset"):
            time.tzset()
        results.add(format_local_time(instant))
    monkeypatch.delenv("TZ", raising=False)
    if hasattr(time, "tzset"):
        time.tzset()
    assert results == {"00:59:30"}


def test_format_local_time_pattern_and_naive_input():
    naive = datetime(2024, 3, 3, 23, 5, 9)
    text = format_local_time(naive)
    assert re.fullmatch(r"\d{2}:\d{2}:\d{2}", text)
    assert text == "06:05:09"


def test_parse_timestamp_variants():
    expected = datetime(2024, 5, 1, 3, 0, 0, tzinfo=timezone.utc)
    assert parse_timestamp("2024-05-01T03:00:00Z") == expected
    assert parse_timestamp("2024-05-01T03:00:00+00:00") == expected
    assert parse_timestamp("2024-05-01T10:00:00+07:00") == expected
    assert parse_timestamp(expected) is expected
    assert parse_timestamp("2024-05-01T03:00:00").tzinfo is not None


def test_reading_from_row_keeps_missing_values():
    row = {
        "id": 7,
        "timestamp": "2024-05-01T03:00:00+00:00",
        "suhu": 26.4,
        "kelembapan": None,
        "cahaya": "n/a",
    }
    reading = reading_from_row(row)
    assert reading.id == 7
    assert reading.temperature == pytest.approx(26.4)
    assert reading.humidity is None
    assert reading.light is None
    assert reading.sound is None
    assert reading.timestamp_local == "10:00:00"


def test_reading_from_row_requires_timestamp():
    with pytest.raises(KeyError):
        reading_from_row({"id": 1, "suhu": 20})


def test_demo_reading_within_noise_bounds():
    base = Setpoint(temperature=30.0, humidity=55.0, light=400.0, sound=70.0)
    rng = random.Random(42)
    last = None
    for _ in range(200):
        reading = demo_reading(base, last, rng)
        for metric, spread in DEMO_NOISE.items():
            assert abs(reading.value(metric) - getattr(base, metric)) <= spread
        last = reading
    assert last.id == 200


def test_demo_reading_ids_and_timestamp():
    now = datetime(2024, 5, 1, 3, 0, 0, tzinfo=timezone.utc)
    first = demo_reading(Setpoint(), None, random.Random(1), now=now)
    second = demo_reading(Setpoint(), first, random.Random(1), now=now + timedelta(seconds=1))
    assert first.id == 1
    assert second.id == 2
    assert first.timestamp == now
    assert second.timestamp_local == "10:00:01"


def test_demo_reading_deterministic_with_seed():
    a = demo_reading(Setpoint(), None, random.Random(3))
    b = demo_reading(Setpoint(), None, random.Random(3))
    assert (a.temperature, a.humidity, a.light, a.sound) == (
        b.temperature,
        b.humidity,
        b.light,
        b.sound,
    )


def test_readings_frame_columns():
    ts = datetime(2024, 5, 1, tzinfo=timezone.utc)
    df = readings_frame([Reading(id=1, timestamp=ts, temperature=20.0, timestamp_local="07:00:00")])
    assert list(df.columns) == [
        "id",
        "timestamp",
        "timestamp_local",
        "temperature",
        "humidity",
        "light",
        "sound",
    ]
    assert df.loc[0, "temperature"] == 20.0
    assert df["humidity"].isna().all()


def test_readings_frame_empty():
    df = readings_frame([])
    assert df.empty
    assert "temperature" in df.columns
