import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "genai-edge-relay")
HOST = os.environ.get("HOSTNAME", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# Upstream streaming endpoint; the relay never connects anywhere else
UPSTREAM_HOST = os.getenv("UPSTREAM_HOST", "generativelanguage.googleapis.com")
UPSTREAM_OPEN_TIMEOUT = float(os.getenv("UPSTREAM_OPEN_TIMEOUT", "10"))
MAX_PENDING_MESSAGES = int(os.getenv("MAX_PENDING_MESSAGES", "1000"))
RELAY_SESSION_REGISTRY = os.getenv("RELAY_SESSION_REGISTRY", "InMemorySessionRegistry")
RELAY_SHUTDOWN_TIMEOUT = float(os.getenv("RELAY_SHUTDOWN_TIMEOUT", "5"))

STATIC_ROOT = os.getenv("STATIC_ROOT", "static")
STATIC_ORIGIN = os.getenv("STATIC_ORIGIN", "").rstrip("/")

API_DELEGATE = os.getenv("API_DELEGATE", "HttpApiDelegate")
API_TRANSLATOR_URL = os.getenv("API_TRANSLATOR_URL", "").rstrip("/")
API_TIMEOUT = int(os.getenv("API_TIMEOUT", "300"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
