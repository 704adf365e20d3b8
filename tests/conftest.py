"""Test configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from supabase_client import StoreError


class FakeSubscription:
    def __init__(self, table, on_insert):
        self.table = table
        self.on_insert = on_insert
        self.stopped = False

    def push(self, record):
        if not self.stopped:
            self.on_insert(record)

    def stop(self):
        self.stopped = True


class FakeStore:
    """In-memory stand-in for SupabaseStore."""

    def __init__(self, rows=None, setpoint_row=None):
        self.rows = list(rows or [])
        self.setpoint_row = setpoint_row
        self.fail_reads = False
        self.fail_writes = False
        self.upserts = []
        self.subscriptions = []
        self.during_fetch = None
        self.during_upsert = None

    def fetch_recent_readings(self, limit, table="sensor_logs"):
        if self.during_fetch:
            self.during_fetch()
        if self.fail_reads:
            raise StoreError("store unreachable")
        newest_first = sorted(self.rows, key=lambda r: r["timestamp"], reverse=True)
        return newest_first[:limit]

    def fetch_setpoint(self, setpoint_id, table="setpoint"):
        if self.fail_reads:
            raise StoreError("store unreachable")
        return self.setpoint_row

    def upsert_setpoint(self, row, table="setpoint"):
        if self.during_upsert:
            self.during_upsert()
        if self.fail_writes:
            raise StoreError("store unreachable")
        self.upserts.append(row)
        self.setpoint_row = row

    def subscribe_inserts(self, table, on_insert):
        sub = FakeSubscription(table, on_insert)
        self.subscriptions.append(sub)
        return sub


T0 = datetime(2024, 5, 1, 3, 0, 0, tzinfo=timezone.utc)


def make_row(i, **values):
    row = {
        "id": i,
        "timestamp": (T0 + timedelta(seconds=i)).isoformat(),
        "suhu": 25.0,
        "kelembapan": 60.0,
        "cahaya": 300.0,
        "suara": 50.0,
    }
    row.update(values)
    return row


class FakeClock:
    def __init__(self, start=0.0):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def history_store():
    """A store holding 500 readings one second apart."""
    return FakeStore(rows=[make_row(i) for i in range(1, 501)])


@pytest.fixture
def clock():
    return FakeClock()
