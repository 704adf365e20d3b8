# Central configuration for the climate room dashboard
# Deployment values can be overridden through environment variables.
import os

# Feed mode: "Demo" (synthetic readings near the setpoint) or "Realtime"
FEED_MODE = os.environ.get("CLIMATE_FEED_MODE", "Demo")

# Supabase project used when FEED_MODE == "Realtime" and for setpoints
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")

# Remote tables
READINGS_TABLE = "sensor_logs"
SETPOINT_TABLE = "setpoint"
SETPOINT_ID = 1

# HTTP timeout for REST calls (seconds)
HTTP_TIMEOUT_S = 10.0

# Room local time (WIB)
DISPLAY_TIMEZONE = "Asia/Jakarta"

# Demo feed: one synthetic reading per tick, sliding window of DEMO_CAPACITY
DEMO_TICK_S = 1.0
DEMO_CAPACITY = 500

# Realtime feed: newest BULK_LOAD_LIMIT rows on start, then push appends
BULK_LOAD_LIMIT = 500
LIVE_CAPACITY = 1000

# Auto-refresh interval in milliseconds
REFRESH_MS = 1000

# Default chart display mode: "Separate" or "Overlay"
DEFAULT_DISPLAY_MODE = "Separate"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Metric key -> (label, unit); keys match Reading/Setpoint attributes
METRICS = {
    "temperature": ("Suhu", "°C"),
    "humidity": ("Kelembapan", "%"),
    "light": ("Cahaya", "lux"),
    "sound": ("Suara", "dB"),
}

DEFAULT_SETPOINT = {
    "temperature": 25.0,
    "humidity": 60.0,
    "light": 300.0,
    "sound": 50.0,
}

# Metric key -> (min, max, step) for the setpoint controls
SETPOINT_RANGES = {
    "temperature": (15.0, 40.0, 0.5),
    "humidity": (20.0, 100.0, 1.0),
    "light": (0.0, 1000.0, 10.0),
    "sound": (0.0, 120.0, 1.0),
}
