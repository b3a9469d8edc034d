"""
User configuration file support.

Reads/writes ``~/.netspeed/config.json``.

Supported keys::

    server = 12345              # preferred server ID (must be a ranked candidate)
    latency_retries = 3
    download_retries = 2        # units per download size tier
    upload_retries = 2          # units per upload size tier
    candidate_limit = 10        # servers probed at start-up
    download_concurrency = null # null: use speedtest.net threadsperurl
    upload_concurrency = null
    config_url = "http://www.speedtest.net/speedtest-config.php"
    servers_url = "http://c.speedtest.net/speedtest-servers-static.php"
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    CANDIDATE_LIMIT,
    CONFIG_URL,
    DEFAULT_DOWNLOAD_RETRIES,
    DEFAULT_LATENCY_RETRIES,
    DEFAULT_UPLOAD_RETRIES,
    SERVERS_URL,
)

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netspeed")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "server": None,
    "latency_retries": DEFAULT_LATENCY_RETRIES,
    "download_retries": DEFAULT_DOWNLOAD_RETRIES,
    "upload_retries": DEFAULT_UPLOAD_RETRIES,
    "candidate_limit": CANDIDATE_LIMIT,
    "download_concurrency": None,
    "upload_concurrency": None,
    "config_url": CONFIG_URL,
    "servers_url": SERVERS_URL,
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        LOGGER.warning("Ignoring unreadable config file %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update(user)
    else:
        LOGGER.warning("Ignoring config file %s: top level is not an object", path)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
