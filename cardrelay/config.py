"""Configuration: listen address, allowed origins, write timeout."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Project root = parent of the cardrelay package
BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")

RELAY_HOST = os.getenv("RELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("SOCKET_PORT", "4000"))

# Comma-separated; "*" accepts any origin
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("RELAY_ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

# Seconds to wait for the reader to acknowledge a write
WRITE_TIMEOUT = float(os.getenv("RELAY_WRITE_TIMEOUT", "10"))

LOG_LEVEL = os.getenv("RELAY_LOG_LEVEL", "INFO").upper()

# Events buffered per SSE observer before further events are dropped
OBSERVER_QUEUE_SIZE = int(os.getenv("RELAY_OBSERVER_QUEUE_SIZE", "100"))
