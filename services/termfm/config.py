"""
Shared configuration loader for terminal-fm services.

Loads a single JSON config file.  Search order:
  1. /etc/terminal-fm/config.json   (system-wide install)
  2. config.json                    (CWD — handy for local dev)
  3. ../config/default.json         (repo fallback)

Usage:
    from termfm.config import cfg

    backend  = cfg("player", "backend", default="local")
    engines  = cfg("player", "engines", default=["mpv", "ffplay", "vlc"])
    port     = cfg("service", "port", default=8780)
    player   = cfg("player")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/terminal-fm/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

BACKENDS = ("local", "stream", "remote")
KNOWN_ENGINES = ("mpv", "ffplay", "vlc")


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    player = config.get("player") or {}
    backend = player.get("backend", "local")
    if backend not in BACKENDS:
        logger.warning("Config %s: unknown player.backend '%s'", path, backend)
    for name in player.get("engines") or []:
        if name not in KNOWN_ENGINES:
            logger.warning("Config %s: unknown engine '%s' in player.engines", path, name)
    volume = player.get("volume", 70)
    if not isinstance(volume, int) or isinstance(volume, bool) or not 0 <= volume <= 100:
        logger.warning("Config %s: player.volume must be an integer 0-100, got %r", path, volume)
    timeout = player.get("terminate_timeout", 2.0)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        logger.warning("Config %s: player.terminate_timeout must be positive, got %r", path, timeout)
    service = config.get("service") or {}
    port = service.get("port", 8780)
    if not isinstance(port, int) or not 1 <= port <= 65535:
        logger.warning("Config %s: invalid service.port %r", path, port)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("player")                      → config["player"]
    cfg("player", "backend")           → config["player"]["backend"]
    cfg("player", "volume", default=70) → config["player"]["volume"] or 70
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
