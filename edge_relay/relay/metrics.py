from prometheus_client import Counter, Gauge

ACTIVE_SESSIONS = Gauge(
    "relay_active_sessions", "WebSocket relay sessions currently open"
)
SESSIONS_TOTAL = Counter("relay_sessions", "WebSocket relay sessions started")
FRAMES_FORWARDED = Counter(
    "relay_frames_forwarded", "Frames forwarded by the relay", ["direction"]
)
FRAMES_DROPPED = Counter(
    "relay_frames_dropped", "Frames the relay could not deliver", ["direction"]
)
UPSTREAM_ERRORS = Counter(
    "relay_upstream_errors", "Errors reported by upstream connections"
)

CLIENT_TO_UPSTREAM = "client_to_upstream"
UPSTREAM_TO_CLIENT = "upstream_to_client"
