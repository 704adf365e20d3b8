"""
Thin client for the Supabase project behind the dashboard.

REST queries and the setpoint upsert go through PostgREST with `httpx`;
inserts on the readings table are pushed over the Realtime websocket with
`websocket-client`, on a background thread like any other push feed.
"""
from __future__ import annotations

import itertools
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from websocket import WebSocketApp, WebSocketException

logger = logging.getLogger(__name__)

HEARTBEAT_S = 25.0
RECONNECT_DELAY_S = 1.0


class StoreError(Exception):
    """Any failure talking to the remote store."""


class SupabaseStore:
    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
            timeout=timeout,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Undecodable response from {response.request.url}") from e

    def fetch_recent_readings(self, limit: int, table: str = "sensor_logs") -> List[Dict[str, Any]]:
        """Newest `limit` rows of the readings table, newest first."""
        response = self._request(
            "GET",
            f"/{table}",
            params={"select": "*", "order": "timestamp.desc", "limit": str(limit)},
        )
        rows = self._json(response)
        if not isinstance(rows, list):
            raise StoreError(f"Expected a list of rows from {table}")
        return rows

    def fetch_setpoint(self, setpoint_id: int, table: str = "setpoint") -> Optional[Dict[str, Any]]:
        response = self._request(
            "GET",
            f"/{table}",
            params={"select": "*", "id": f"eq.{setpoint_id}", "limit": "1"},
        )
        rows = self._json(response)
        return rows[0] if rows else None

    def upsert_setpoint(self, row: Dict[str, Any], table: str = "setpoint") -> None:
        self._request(
            "POST",
            f"/{table}",
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def subscribe_inserts(
        self,
        table: str,
        on_insert: Callable[[Dict[str, Any]], None],
    ) -> "RealtimeSubscription":
        sub = RealtimeSubscription(self.realtime_url(), self.api_key, table, on_insert)
        sub.start()
        return sub

    def realtime_url(self) -> str:
        ws_base = self.url.replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return f"{ws_base}/realtime/v1/websocket?apikey={self.api_key}&vsn=1.0.0"

    def close(self) -> None:
        self._client.close()


# ----------------------------- Realtime push subscription ----------------------------- #

class RealtimeSubscription:
    """INSERT notifications for one table over the Phoenix websocket protocol."""

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str,
        on_insert: Callable[[Dict[str, Any]], None],
        schema: str = "public",
    ):
        self.url = url
        self.api_key = api_key
        self.table = table
        self.schema = schema
        self.topic = f"realtime:{schema}:{table}"
        self._on_insert = on_insert
        self._stop = threading.Event()
        # Held while a callback runs; stop() takes it so no callback outlives stop()
        self._lock = threading.Lock()
        self._refs = itertools.count(1)
        self._thread: threading.Thread | None = None
        self._heartbeat: threading.Thread | None = None
        self._ws: WebSocketApp | None = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        self._heartbeat = threading.Thread(target=self._heartbeat_loop, daemon=True)
        self._heartbeat.start()

    def stop(self):
        with self._lock:
            self._stop.set()
        ws = self._ws
        if ws is not None:
            try:
                ws.close()
            except WebSocketException as e:
                logger.debug("Error closing realtime socket: %s", e)

    def _frame(self, topic: str, event: str, payload: Dict[str, Any]) -> str:
        return json.dumps(
            {"topic": topic, "event": event, "payload": payload, "ref": str(next(self._refs))}
        )

    def join_frame(self) -> str:
        return self._frame(
            self.topic,
            "phx_join",
            {
                "config": {
                    "postgres_changes": [
                        {"event": "INSERT", "schema": self.schema, "table": self.table}
                    ]
                },
                "access_token": self.api_key,
            },
        )

    def _on_open(self, ws):
        if self._stop.is_set():
            ws.close()
            return
        logger.info("Realtime connected, joining %s", self.topic)
        ws.send(self.join_frame())

    def _on_error(self, _, error):
        logger.warning("Realtime socket error: %s", error)

    def _on_message(self, _, message: str):
        try:
            frame = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable realtime frame")
            return
        record = self._extract_record(frame)
        if record is None:
            return
        with self._lock:
            if self._stop.is_set():
                return
            self._on_insert(record)

    def _extract_record(self, frame: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        event = frame.get("event")
        payload = frame.get("payload") or {}
        if event == "postgres_changes":
            data = payload.get("data") or {}
            if data.get("type") == "INSERT":
                return data.get("record")
        elif event == "INSERT":
            return payload.get("record")
        elif event == "phx_reply" and payload.get("status") == "error":
            logger.warning("Realtime join rejected: %s", payload.get("response"))
        return None

    def _heartbeat_loop(self):
        while not self._stop.wait(HEARTBEAT_S):
            ws = self._ws
            if ws is None:
                continue
            try:
                ws.send(self._frame("phoenix", "heartbeat", {}))
            except WebSocketException as e:
                logger.debug("Heartbeat not sent: %s", e)

    def _run(self):
        while not self._stop.is_set():
            try:
                self._ws = WebSocketApp(
                    self.url,
                    on_open=self._on_open,
                    on_message=self._on_message,
                    on_error=self._on_error,
                )
                # stop() may have run before self._ws was visible to it
                if self._stop.is_set():
                    break
                self._ws.run_forever(ping_interval=20, ping_timeout=10)
            except WebSocketException as e:
                logger.warning("Realtime connection failed: %s", e)
            finally:
                self._ws = None
            if not self._stop.is_set():
                time.sleep(RECONNECT_DELAY_S)
