"""Static configuration for deadchat.

All user-editable settings (activity thresholds, retry delays, document
origin, logging) live in a single JSON file for quick edits without
touching Python.
"""

import json
import os

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# DEADCHAT_CONFIG may point at another config file (via env or .env).
load_dotenv()
CONFIG_PATH = os.getenv("DEADCHAT_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Activity (rate) detection. Windows and intervals are in milliseconds.
# - more than MAX_MESSAGES_SHORT_WINDOW inside SHORT_WINDOW_MS is spam
# - more than MAX_MESSAGES_LONG_WINDOW inside LONG_WINDOW_MS is spam
# - two messages closer than MIN_INTERVAL_MS is spam
_activity = _CONFIG.get("activity", {})
SHORT_WINDOW_MS = int(_activity.get("short_window_ms", 30000))
MAX_MESSAGES_SHORT_WINDOW = int(_activity.get("max_messages_short_window", 5))
LONG_WINDOW_MS = int(_activity.get("long_window_ms", 60000))
MAX_MESSAGES_LONG_WINDOW = int(_activity.get("max_messages_long_window", 10))
MIN_INTERVAL_MS = int(_activity.get("min_interval_ms", 1000))
RETENTION_MS = int(_activity.get("retention_ms", 120000))
CLEANUP_INTERVAL_MS = int(_activity.get("cleanup_interval_ms", 60000))

# Retry delays (seconds) while the chat root has not been rendered yet.
_loop = _CONFIG.get("loop", {})
CLASSIFIER_RETRY_DELAY = float(_loop.get("classifier_retry_delay", 0.1))
ROOT_RETRY_DELAY = float(_loop.get("root_retry_delay", 0.5))
MAX_ROOT_ATTEMPTS = int(_loop.get("max_root_attempts", 20))

# Origin used to resolve relative profile links.
_document = _CONFIG.get("document", {})
ORIGIN = _document.get("origin", "https://www.twitch.tv")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
