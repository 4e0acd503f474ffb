"""Static configuration for beerscope.

All user-editable settings (announcer, admins, Untappd limits, logging) live
in a single JSON file for quick edits without touching Python. Secrets stay
in `.env`.
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database.
DB_PATH = os.path.join(PROJECT_ROOT, "beerscope.db")

CONFIG_PATH = os.environ.get("BEERSCOPE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_channel(raw):
    """Chat ids arrive as numbers or numeric strings; @names stay strings."""

    if raw in (None, ""):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    return text


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

if _CONFIG.get("db_path"):
    DB_PATH = os.path.join(PROJECT_ROOT, _CONFIG["db_path"])

# Announcer: no channel means no periodic task at all.
_announcer = _CONFIG.get("announcer", {})
ANNOUNCE_CHANNEL = _normalize_channel(_announcer.get("channel"))
ANNOUNCE_INTERVAL_MINUTES = float(_announcer.get("interval_minutes", 5))

# Telegram user ids allowed to run fetch/forget <person>/debug commands.
ADMINS = {str(admin) for admin in _CONFIG.get("admins", [])}

COMMAND_PREFIX = _CONFIG.get("command_prefix", "untappd")

_untappd = _CONFIG.get("untappd", {})
UNTAPPD_BASE_URL = _untappd.get("base_url", "https://api.untappd.com/v4")
UNTAPPD_TIMEOUT_SECONDS = float(_untappd.get("timeout_seconds", 10))

# "last" shows everything from the window if there are at least `minimum`
# check-ins in it, otherwise the `minimum` most recent.
_queries = _CONFIG.get("queries", {})
QUERY_WINDOW_HOURS = int(_queries.get("window_hours", 24))
QUERY_MINIMUM = int(_queries.get("minimum", 3))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
