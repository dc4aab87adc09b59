"""Transcode a station to raw PCM and write it to an output sink.

Used when the listener has no local engine and the audio has to travel
over the session itself: ffmpeg decodes the stream to 44.1 kHz stereo
s16le and the samples go to the sink instead of a sound card.  Volume is
an ffmpeg gain filter, so changing it restarts the transcoder.
"""

import io
import logging

from .constants import DEFAULT_VOLUME, TERMINATE_TIMEOUT
from .contract import (
    PlaybackState, PlayerSession, emit, validate_station, validate_volume,
)
from .engines import select_engine, transcode_engine
from .supervisor import ProcessSupervisor

log = logging.getLogger('termfm.stream')


def _sink_fd(sink):
    try:
        return sink.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None


class StreamPlayer:
    """Streams PCM for the current station into ``sink``."""

    def __init__(self, sink, engine=None, volume=DEFAULT_VOLUME,
                 terminate_timeout=TERMINATE_TIMEOUT, on_event=None):
        if sink is None:
            raise ValueError("StreamPlayer needs an output sink")
        self.sink = sink
        self.engine = engine or transcode_engine()
        self.session = PlayerSession(volume=validate_volume(volume))
        self.supervisor = ProcessSupervisor(
            self.session, terminate_timeout, on_event=on_event, label='transcoder')
        self._on_event = on_event

    async def play(self, station, volume=None):
        validate_station(station)
        if volume is not None:
            validate_volume(volume)
        async with self.session.lock:
            vol = self.session.volume if volume is None else volume
            await self._start_locked(station, vol)
        self._started(station, vol)

    async def stop(self):
        async with self.session.lock:
            signalled = self.supervisor.stop_locked()
        if signalled:
            log.info("Streaming stopped")
            emit(self._on_event, 'stopped')

    async def set_volume(self, volume):
        validate_volume(volume)
        async with self.session.lock:
            self.session.volume = volume
            playing = self.session.state is PlaybackState.PLAYING
            station = self.session.station
            generation = self.session.generation
        emit(self._on_event, 'volume', volume=volume)
        if playing:
            await self._restart(station, generation)

    def get_volume(self):
        return self.session.volume

    def get_state(self):
        return self.session.state

    def get_current_station(self):
        return self.session.station

    async def cleanup(self):
        async with self.session.lock:
            killed = self.supervisor.kill_locked()
        if killed:
            log.info("Streaming cleaned up")
            emit(self._on_event, 'stopped')

    async def _start_locked(self, station, volume):
        self.supervisor.stop_locked()
        argv = select_engine([self.engine]).command(station.url, volume)
        fd = _sink_fd(self.sink)
        if fd is not None:
            flush = getattr(self.sink, 'flush', None)
            if flush is not None:
                flush()
            await self.supervisor.launch(station, argv, sink_fd=fd)
        else:
            await self.supervisor.launch(station, argv, sink=self.sink)
        self.session.volume = volume

    async def _restart(self, station, generation):
        """Relaunch ``station`` unless the session moved on since ``generation``."""
        async with self.session.lock:
            if (self.session.generation != generation
                    or self.session.state is not PlaybackState.PLAYING):
                log.debug("Skipping transcoder restart: session changed")
                return
            vol = self.session.volume
            await self._start_locked(station, vol)
        self._started(station, vol)

    def _started(self, station, volume):
        log.info("Started streaming: %s (%s) gain %.2f",
                 station.display_name, station.url, volume / 100)
        emit(self._on_event, 'started', station=station.to_dict(),
             engine=self.engine.name, volume=volume)
