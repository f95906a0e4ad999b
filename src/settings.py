"""Static configuration for rconrelay.

All user-editable settings (servers, relay policy, commands, logging) live
in a single JSON file for quick edits without touching Python. Secrets come
from the environment (.env).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Servers and relay behaviour are loaded from config.json; RELAY_CONFIG
# points at another file when several relays share one checkout.
CONFIG_PATH = os.getenv("RELAY_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# UDP port the servers push their logs to (logaddress_add <ip>:<port>).
RELAY_PORT = int(_CONFIG.get("relay_port", 9871))
RELAY_HOST = _CONFIG.get("relay_host", "0.0.0.0")
# Optional sv_logsecret shared by all servers.
LOG_SECRET = _CONFIG.get("log_secret") or None

# Chat -> server length policy.
MAX_MESSAGE_LENGTH = int(_CONFIG.get("max_message_length", 512))
ANNOUNCE_MESSAGE_TRIM = bool(_CONFIG.get("announce_trim", True))

# Server chat starting with any of these never reaches the chat platform.
MESSAGES_STARTS_WITH_BLACKLIST = list(_CONFIG.get("messages_starts_with_blacklist", []))

# Surfacing script errors can leak server internals; off unless asked for.
SHOW_LUA_ERRORS = bool(_CONFIG.get("show_lua_errors", False))
ERROR_DISPLAY_NAME = _CONFIG.get("error_display_name", "Lua Error")

# Raw RCON commands: <prefix><name> <command>, allowed users only.
COMMAND_PREFIX = _CONFIG.get("command_prefix", "--")
RCON_COMMANDS = list(_CONFIG.get("rcon_commands", ["rcon", "command", "c"]))
ALLOWED_FOR_COMMANDS = [str(user) for user in _CONFIG.get("allowed_for_commands", [])]
COMMAND_PREVIEW_CHARS = int(_CONFIG.get("command_preview_chars", 1993))

# Any RCON answer containing one of these (case-insensitive) counts as failed.
FAILURE_MARKERS = list(_CONFIG.get("failure_markers", ["error"]))

_reactions = _CONFIG.get("reactions", {})
TRIM_REACTION = _reactions.get("trim", "✍")
FAILURE_REACTION = _reactions.get("failure", "👎")

# Framing understood by the game-server addon.
_wire = _CONFIG.get("wire", {})
RELAY_VERB = _wire.get("verb", "say_relay")
COMMAND_CEILING = int(_wire.get("ceiling", 500))
AVOID_TAG_COLLISIONS = bool(_wire.get("avoid_tag_collisions", False))

_rcon = _CONFIG.get("rcon", {})
RCON_IDLE_TIMEOUT = float(_rcon.get("idle_timeout", 0.5))

# Servers keyed by a unique name: {host, port, password, relay_channel}.
SERVERS = _CONFIG.get("servers", {})

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
