"""Shared fixtures for terminal-fm Python unit tests."""

import json
import sys
from pathlib import Path

import pytest

# Add services/ to sys.path so `from termfm.config import cfg` works
SERVICES_DIR = Path(__file__).resolve().parents[3] / "services"
sys.path.insert(0, str(SERVICES_DIR))

from termfm.playback.engines import Engine  # noqa: E402
from termfm.station import Station  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Reset the config module's cache before each test."""
    import termfm.config as config_mod
    config_mod._config = None
    yield
    config_mod._config = None


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Provide a temp config file path and patch _SEARCH_PATHS to use it."""
    import termfm.config as config_mod

    path = tmp_path / "config.json"
    monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(path)])
    return path


@pytest.fixture
def write_config(config_file):
    """Write a dict as JSON to the temp config file.

    Usage:
        def test_something(write_config):
            write_config({"player": {"backend": "remote"}})
            assert cfg("player", "backend") == "remote"
    """
    import termfm.config as config_mod

    def _write(data: dict):
        config_file.write_text(json.dumps(data))
        config_mod._config = None  # force re-read
        return config_file

    return _write


@pytest.fixture
def mock_config(monkeypatch):
    """Directly set the config dict without file I/O."""
    import termfm.config as config_mod

    def _mock(data: dict):
        monkeypatch.setattr(config_mod, "_config", data)

    return _mock


# --- Fake engines: the running interpreter stands in for mpv/ffmpeg ---


def script_engine(code: str, name="fake") -> Engine:
    """Engine that runs ``python -c code``; url and volume are passed as argv."""
    return Engine(name, sys.executable, lambda url, volume: ["-c", code, url, str(volume)])


SLEEPER = "import time; time.sleep(30)"
STUBBORN = (
    "import signal, time; "
    "signal.signal(signal.SIGTERM, signal.SIG_IGN); "
    "time.sleep(30)"
)
QUICK_EXIT = "pass"


@pytest.fixture
def sleeper_engine():
    return script_engine(SLEEPER, "sleeper")


@pytest.fixture
def stubborn_engine():
    return script_engine(STUBBORN, "stubborn")


@pytest.fixture
def quick_engine():
    return script_engine(QUICK_EXIT, "quick")


@pytest.fixture
def missing_engine():
    return Engine("ghost", "termfm-no-such-player", lambda url, volume: [url])


@pytest.fixture
def station_a():
    return Station(uuid="a", name="Station A", url="http://a.example/stream")


@pytest.fixture
def station_b():
    return Station(uuid="b", name="Station B", url="http://b.example/stream")
