"""
Playback backends for terminal-fm.

Three interchangeable implementations of the Player contract.  The
factory function ``create_player`` reads config.json and returns the
right one.

Supported backends:
  - ``local``   – first installed engine (mpv, ffplay, vlc) on this machine
  - ``stream``  – ffmpeg transcode to raw PCM written to an output sink
  - ``remote``  – control frames written to the session for the radio client
"""

import logging

from ..config import cfg
from .codec import ControlFrame, FrameParser, RawFrame, decode_payload, encode_frame
from .constants import DEFAULT_VOLUME, TERMINATE_TIMEOUT
from .contract import PlaybackState, Player, PlayerSession
from .engines import Engine, local_engines, transcode_engine
from .errors import (
    EngineUnavailable, FrameError, InvalidInput, PlaybackError,
    ProcessLaunchFailure, TransportFailure,
)
from .interceptor import FrameInterceptor
from .local_player import LocalPlayer
from .remote_player import RemotePlayer
from .stream_player import StreamPlayer

logger = logging.getLogger("termfm.player")

__all__ = [
    "ControlFrame",
    "Engine",
    "EngineUnavailable",
    "FrameError",
    "FrameInterceptor",
    "FrameParser",
    "InvalidInput",
    "LocalPlayer",
    "PlaybackError",
    "PlaybackState",
    "Player",
    "PlayerSession",
    "ProcessLaunchFailure",
    "RawFrame",
    "RemotePlayer",
    "StreamPlayer",
    "TransportFailure",
    "create_player",
    "decode_payload",
    "encode_frame",
]


def create_player(backend=None, *, writer=None, sink=None, on_event=None) -> Player:
    """Create the right player based on config.json.

    Reads from config.json:
      player.backend            – "local" (default), "stream" or "remote"
      player.engines            – local engine priority list
      player.paths              – {engine: executable} overrides
      player.volume             – starting volume (default 70)
      player.terminate_timeout  – seconds before SIGTERM escalates to SIGKILL
      stream.ffmpeg_path        – transcoder executable
    """
    backend = str(backend or cfg("player", "backend", default="local")).lower()
    volume = int(cfg("player", "volume", default=DEFAULT_VOLUME))
    timeout = float(cfg("player", "terminate_timeout", default=TERMINATE_TIMEOUT))

    if backend == "local":
        engines = local_engines(cfg("player", "engines"), cfg("player", "paths"))
        logger.info("Player backend: local (%s, volume %d)",
                    ", ".join(e.name for e in engines) or "no engines", volume)
        return LocalPlayer(engines, volume=volume, terminate_timeout=timeout,
                           on_event=on_event)
    elif backend == "stream":
        ffmpeg = cfg("stream", "ffmpeg_path", default="ffmpeg")
        logger.info("Player backend: stream via %s (volume %d)", ffmpeg, volume)
        return StreamPlayer(sink, transcode_engine(ffmpeg), volume=volume,
                            terminate_timeout=timeout, on_event=on_event)
    elif backend == "remote":
        logger.info("Player backend: remote control frames (volume %d)", volume)
        return RemotePlayer(writer, volume=volume, on_event=on_event)
    raise ValueError(f"unknown player backend: {backend!r}")
