"""Static configuration for chatterbox.

All user-editable settings (chat, transport, rebroadcast models, dedup,
logging) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment (.env).
"""

import json
import os

from core.config import DEFAULT_ASK_TIMEOUT, DEFAULT_MAILBOX_SIZE

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.getenv("CHATTERBOX_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _chat_ref(value):
    """Numeric chat ids may be written as strings; usernames stay strings."""

    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    return value


_CONFIG = _load_json_config()

# Where to store the SQLite database; relative paths sit next to config.json.
DB_PATH = os.path.join(os.path.dirname(os.path.abspath(CONFIG_PATH)), _CONFIG.get("db_path", "chatterbox.db"))

# The chat the bot reads, replies in, and searches.
CHAT = _chat_ref(_CONFIG.get("chat"))
# Rebroadcasts are forwarded here; "me" is Saved Messages.
BROADCAST_CHAT = _chat_ref(_CONFIG.get("broadcast_chat", "me"))
# "user" posts through the Telethon session, "bot" through the Bot API.
TRANSPORT = _CONFIG.get("transport", "user")

_router = _CONFIG.get("router", {})
MAILBOX_SIZE = int(_router.get("mailbox_size", DEFAULT_MAILBOX_SIZE))
ASK_TIMEOUT_SECONDS = float(_router.get("ask_timeout_seconds", DEFAULT_ASK_TIMEOUT))

SEARCH_LIMIT = int(_CONFIG.get("search", {}).get("limit", 50))

# Deduplication of rebroadcasts.
# - DEDUP_MODE: "off", "per_author", or "global"
# - DEDUP_TTL_DAYS: cleanup horizon for fingerprints
_dedup = _CONFIG.get("dedup", {})
DEDUP_MODE = _dedup.get("mode", "per_author")
DEDUP_TTL_DAYS = int(_dedup.get("ttl_days", 30))

# Models registered with the rebroadcaster when the router starts.
REBROADCAST_MODELS = _CONFIG.get("rebroadcast", {}).get("models", [])

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
