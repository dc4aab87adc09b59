"""Remote playback by sending control frames to the listener's client.

The ``writer`` argument is duck-typed.  It must provide:

    writer.write(data: bytes)
    writer.drain()      -> awaitable   (optional, e.g. asyncio.StreamWriter)
    writer.flush()                     (optional, e.g. a binary file)

Frames are written inline with whatever else goes to the same channel;
the radio client on the other end picks them out and drives its own
LocalPlayer.  No process is owned here.
"""

import inspect
import logging

from .codec import ControlFrame, encode_frame
from .constants import DEFAULT_VOLUME
from .contract import (
    PlaybackState, PlayerSession, emit, validate_station, validate_volume,
)
from .errors import TransportFailure

log = logging.getLogger('termfm.remote')


class RemotePlayer:
    """Forwards PLAY/STOP/VOLUME to the remote client."""

    def __init__(self, writer, volume=DEFAULT_VOLUME, on_event=None):
        self.writer = writer
        self.session = PlayerSession(volume=validate_volume(volume))
        self._on_event = on_event

    async def play(self, station, volume=None):
        validate_station(station)
        if volume is not None:
            validate_volume(volume)
        if self.writer is None:
            raise TransportFailure("no output writer configured")
        async with self.session.lock:
            vol = self.session.volume if volume is None else volume
            data = encode_frame(ControlFrame.play(station.url, vol))
            # Clean slate on the far side even if it thinks it's idle.
            try:
                await self._send(ControlFrame.stop())
            except TransportFailure as e:
                log.debug("STOP before PLAY failed: %s", e)
            await self._write(data)
            self.session.volume = vol
            self.session.state = PlaybackState.PLAYING
            self.session.station = station
        log.info("Remote play: %s (volume %d)", station.display_name, vol)
        emit(self._on_event, 'started', station=station.to_dict(), engine='remote', volume=vol)

    async def stop(self):
        async with self.session.lock:
            if self.session.state is PlaybackState.STOPPED:
                return
            await self._send(ControlFrame.stop())
            self.session.reset()
        log.info("Remote stop")
        emit(self._on_event, 'stopped')

    async def set_volume(self, volume):
        validate_volume(volume)
        async with self.session.lock:
            self.session.volume = volume
            if self.session.state is PlaybackState.PLAYING:
                await self._send(ControlFrame.set_volume(volume))
        emit(self._on_event, 'volume', volume=volume)

    def get_volume(self):
        return self.session.volume

    def get_state(self):
        return self.session.state

    def get_current_station(self):
        return self.session.station

    async def cleanup(self):
        await self.stop()

    # -- transport --

    async def _send(self, frame):
        await self._write(encode_frame(frame))

    async def _write(self, data):
        if self.writer is None:
            raise TransportFailure("no writer available")
        try:
            self.writer.write(data)
            drain = getattr(self.writer, 'drain', None)
            if drain is not None:
                result = drain()
                if inspect.isawaitable(result):
                    await result
            else:
                flush = getattr(self.writer, 'flush', None)
                if flush is not None:
                    flush()
        except (OSError, ConnectionError, RuntimeError, ValueError) as e:
            raise TransportFailure(f"failed to send control frame: {e}") from e
