"""
Streamlit climate room dashboard (Ruang Iklim — Monitoring & Control)

Features
- Live cards and charts for temperature, humidity, light and sound
- Demo feed (synthetic readings around the setpoint) or Realtime feed
  (Supabase `sensor_logs`: newest rows on start, then pushed inserts)
- Edit and save the room setpoint (Supabase `setpoint`, id 1)
- Export the visible readings to CSV

Run locally
  pip install -e .
  SUPABASE_URL=... SUPABASE_ANON_KEY=... CLIMATE_FEED_MODE=Realtime streamlit run dashboard.py
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import List

import pandas as pd
import plotly.express as px
import streamlit as st
from streamlit_autorefresh import st_autorefresh

import dashboard_config as cfg
from live_feed import DEMO, LiveFeed
from readings import Reading, readings_frame
from setpoints import SetpointStore
from supabase_client import SupabaseStore

logger = logging.getLogger("dashboard")


def setup_logging(level: str = cfg.LOG_LEVEL) -> None:
    # Streamlit reruns the script; configure the root logger only once
    root = logging.getLogger()
    if any(getattr(h, "_climate_dashboard", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    handler._climate_dashboard = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


@st.cache_resource
def get_store() -> SupabaseStore | None:
    if not cfg.SUPABASE_URL or not cfg.SUPABASE_ANON_KEY:
        logger.warning("SUPABASE_URL / SUPABASE_ANON_KEY not set; running without a store")
        return None
    return SupabaseStore(cfg.SUPABASE_URL, cfg.SUPABASE_ANON_KEY, timeout=cfg.HTTP_TIMEOUT_S)


def format_value(value: float | None, unit: str) -> str:
    return f"{value:.1f} {unit}" if value is not None else "--"


# ----------------------------- Charts ----------------------------- #

def chart_frame(readings: List[Reading]) -> pd.DataFrame:
    df = readings_frame(readings)
    df["waktu"] = pd.to_datetime(df["timestamp"], utc=True).dt.tz_convert(cfg.DISPLAY_TIMEZONE)
    return df


def _style(fig):
    fig.update_layout(
        yaxis=dict(type="linear", showgrid=True, zeroline=True),
        xaxis=dict(showgrid=True, title="WIB"),
        uirevision="keep",  # preserve zoom/viewport across reruns
    )
    return fig


def render_metric_chart(df: pd.DataFrame, metric: str, height: int = 300):
    label, unit = cfg.METRICS[metric]
    fig = px.line(
        df,
        x="waktu",
        y=metric,
        hover_data=["timestamp_local"],
        title=f"Grafik {label} (WIB)",
        labels={metric: f"{label} ({unit})"},
        height=height,
    )
    st.plotly_chart(_style(fig), use_container_width=True)


def render_overlay_chart(df: pd.DataFrame):
    df_melt = df.melt(
        id_vars=["waktu", "timestamp_local"],
        value_vars=list(cfg.METRICS),
        var_name="field",
        value_name="value",
    )
    df_melt["field"] = df_melt["field"].map(
        {k: f"{label} ({unit})" for k, (label, unit) in cfg.METRICS.items()}
    )
    fig = px.line(
        df_melt,
        x="waktu",
        y="value",
        color="field",
        hover_data=["timestamp_local"],
        title="Analytics Multi-Line (WIB)",
        height=400,
    )
    st.plotly_chart(_style(fig), use_container_width=True)


# ----------------------------- Streamlit App ----------------------------- #

def main():
    setup_logging()
    st.set_page_config(page_title="Ruang Iklim Dashboard", layout="wide")
    st_autorefresh(interval=cfg.REFRESH_MS, key="_autorefresh")

    ss = st.session_state
    store = get_store()

    if "feed" not in ss:
        try:
            ss.feed = LiveFeed(cfg.FEED_MODE, store=store)
        except ValueError as e:
            st.error(f"Feed not started: {e}")
            st.stop()
    feed: LiveFeed = ss.feed

    ss.setdefault("alerts", [])
    if "setpoints" not in ss:
        ss.setpoints = SetpointStore(store, notify=ss.alerts.append)
        if feed.mode == DEMO:
            ss.setpoints.on_change = feed.set_baseline
        ss.setpoints.load()
    setpoints: SetpointStore = ss.setpoints

    if not feed.active:
        feed.start()
    feed.poll()

    st.title("Ruang Iklim — Monitoring & Control")
    if feed.mode == DEMO:
        st.caption("MODE DEMO AKTIF — grafik simulasi mendekati setpoint.")
    else:
        st.caption(f"MODE REALTIME — data diambil dari Supabase {cfg.READINGS_TABLE}.")
    if feed.last_error:
        st.caption(f"Gagal memuat data: {feed.last_error}")

    readings = feed.snapshot()
    latest = feed.latest()

    # Cards
    cols = st.columns(len(cfg.METRICS))
    for col, (metric, (label, unit)) in zip(cols, cfg.METRICS.items()):
        with col:
            st.metric(label, format_value(latest.value(metric) if latest else None, unit))

    active_metric = st.radio(
        "Metric",
        list(cfg.METRICS),
        format_func=lambda k: cfg.METRICS[k][0],
        horizontal=True,
        key="active_metric",
    )

    if feed.loading or not readings:
        st.info("Belum ada data.")
    else:
        df = chart_frame(readings)
        render_metric_chart(df, active_metric)
        display_mode = st.radio(
            "Display mode",
            ["Separate", "Overlay"],
            index=(0 if cfg.DEFAULT_DISPLAY_MODE == "Separate" else 1),
            horizontal=True,
            key="chart_display_mode",
        )
        if display_mode == "Overlay":
            render_overlay_chart(df)
        else:
            for metric in cfg.METRICS:
                if metric != active_metric:
                    render_metric_chart(df, metric, height=250)

    render_setpoint_controls(setpoints)
    render_sidebar(readings)


def _copy_widget_value(src: str, dst: str):
    st.session_state[dst] = st.session_state[src]


def render_setpoint_controls(setpoints: SetpointStore):
    ss = st.session_state
    st.subheader("Control Setpoint")
    values = {}
    for metric, (label, unit) in cfg.METRICS.items():
        lo, hi, step = cfg.SETPOINT_RANGES[metric]
        key = f"setpoint_{metric}"
        num_key = f"{key}_number"
        ss.setdefault(key, float(getattr(setpoints.setpoint, metric)))
        ss.setdefault(num_key, ss[key])
        slider_col, number_col = st.columns([4, 1])
        with slider_col:
            values[metric] = st.slider(
                f"{label} Target ({unit})",
                min_value=lo,
                max_value=hi,
                step=step,
                key=key,
                on_change=_copy_widget_value,
                args=(key, num_key),
            )
        with number_col:
            st.number_input(
                f"{label} ({unit})",
                min_value=lo,
                max_value=hi,
                step=step,
                key=num_key,
                on_change=_copy_widget_value,
                args=(num_key, key),
            )
    setpoints.update(**values)

    label = "Menyimpan..." if setpoints.saving else "Simpan Setpoint"
    if st.button(label, disabled=setpoints.saving, key="save_setpoint"):
        with st.spinner("Menyimpan..."):
            saved = setpoints.save()
        if saved:
            st.success(f"Setpoint tersimpan ({datetime.now().strftime('%H:%M:%S')})")

    while ss.alerts:
        st.error(ss.alerts.pop(0))


def render_sidebar(readings: List[Reading]):
    with st.sidebar:
        st.subheader("Data")
        st.caption(f"{len(readings)} readings in view")
        if readings:
            csv_bytes = readings_frame(readings).to_csv(index=False).encode("utf-8")
            st.download_button(
                "Export CSV",
                data=csv_bytes,
                file_name=f"ruang_iklim_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv",
                mime="text/csv",
                use_container_width=True,
                key="export_csv",
            )
        else:
            st.button("Export CSV", use_container_width=True, disabled=True, key="export_csv_disabled")


main()
