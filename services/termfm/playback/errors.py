"""Errors raised by the playback components.

All of them are local to the failing call; none is fatal to the process.
"""


class PlaybackError(Exception):
    """Base class for playback failures."""


class InvalidInput(PlaybackError, ValueError):
    """Missing station/URL or a volume outside 0-100."""


class EngineUnavailable(PlaybackError):
    """None of the configured playback engines is installed."""


class ProcessLaunchFailure(PlaybackError):
    """The engine executable was found but could not be started."""


class TransportFailure(PlaybackError):
    """Writing a control frame to the outbound channel failed."""


class FrameError(ValueError):
    """A control frame body could not be decoded."""
