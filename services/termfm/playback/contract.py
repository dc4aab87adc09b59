"""The playback contract shared by the local, stream and remote players."""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from ..station import Station
from .constants import DEFAULT_VOLUME, MAX_VOLUME, MIN_VOLUME
from .errors import InvalidInput

log = logging.getLogger('termfm.player')

EventListener = Callable[[str, dict], Any]


class PlaybackState(enum.Enum):
    STOPPED = 'stopped'
    PLAYING = 'playing'
    # Reserved; no backend reports these yet.
    PAUSED = 'paused'
    BUFFERING = 'buffering'


@runtime_checkable
class Player(Protocol):
    """What the control surface needs from any playback backend."""

    async def play(self, station: Station, volume: Optional[int] = None) -> None: ...

    async def stop(self) -> None: ...

    async def set_volume(self, volume: int) -> None: ...

    def get_volume(self) -> int: ...

    def get_state(self) -> PlaybackState: ...

    def get_current_station(self) -> Optional[Station]: ...

    async def cleanup(self) -> None: ...


@dataclass
class PlayerSession:
    """Mutable playback context owned by exactly one player."""

    volume: int = DEFAULT_VOLUME
    state: PlaybackState = PlaybackState.STOPPED
    station: Optional[Station] = None
    handle: Any = None
    generation: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def reset(self):
        self.state = PlaybackState.STOPPED
        self.station = None
        self.handle = None


def validate_volume(volume) -> int:
    if isinstance(volume, bool) or not isinstance(volume, int):
        raise InvalidInput(f"volume must be an integer, got {volume!r}")
    if not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise InvalidInput(f"volume must be between {MIN_VOLUME} and {MAX_VOLUME}")
    return volume


def validate_station(station) -> Station:
    if station is None or not getattr(station, 'url', ''):
        raise InvalidInput("invalid station or URL")
    return station


def emit(listener: Optional[EventListener], event: str, **data):
    """Best-effort diagnostics callback; listener errors never propagate."""
    if listener is None:
        return
    try:
        listener(event, data)
    except Exception:
        log.exception("Event listener failed for %s", event)
