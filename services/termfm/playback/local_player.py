"""Local audio playback via the first installed engine (mpv, ffplay, vlc)."""

import logging

from .constants import DEFAULT_VOLUME, TERMINATE_TIMEOUT
from .contract import (
    PlaybackState, PlayerSession, emit, validate_station, validate_volume,
)
from .engines import local_engines, select_engine
from .supervisor import ProcessSupervisor

log = logging.getLogger('termfm.player')


class LocalPlayer:
    """Plays stations on this machine's audio device."""

    def __init__(self, engines=None, volume=DEFAULT_VOLUME,
                 terminate_timeout=TERMINATE_TIMEOUT, on_event=None):
        self.engines = list(engines) if engines is not None else local_engines()
        self.session = PlayerSession(volume=validate_volume(volume))
        self.supervisor = ProcessSupervisor(
            self.session, terminate_timeout, on_event=on_event, label='player')
        self._on_event = on_event

    async def play(self, station, volume=None):
        validate_station(station)
        if volume is not None:
            validate_volume(volume)
        async with self.session.lock:
            vol = self.session.volume if volume is None else volume
            engine = await self._start_locked(station, vol)
        self._started(station, engine, vol)

    async def stop(self):
        async with self.session.lock:
            signalled = self.supervisor.stop_locked()
        if signalled:
            log.info("Playback stopped")
            emit(self._on_event, 'stopped')

    async def set_volume(self, volume):
        validate_volume(volume)
        async with self.session.lock:
            self.session.volume = volume
            playing = self.session.state is PlaybackState.PLAYING
            station = self.session.station
            generation = self.session.generation
        emit(self._on_event, 'volume', volume=volume)
        # The engines can't change volume live; restart outside the lock.
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
            log.info("Player cleaned up")
            emit(self._on_event, 'stopped')

    async def _start_locked(self, station, volume):
        self.supervisor.stop_locked()
        engine = select_engine(self.engines)
        argv = engine.command(station.url, volume)
        await self.supervisor.launch(station, argv)
        # Only a successful launch changes the session volume.
        self.session.volume = volume
        return engine

    async def _restart(self, station, generation):
        """Relaunch ``station`` unless the session moved on since ``generation``."""
        async with self.session.lock:
            if (self.session.generation != generation
                    or self.session.state is not PlaybackState.PLAYING):
                log.debug("Skipping volume restart: session changed")
                return
            vol = self.session.volume
            engine = await self._start_locked(station, vol)
        self._started(station, engine, vol)

    def _started(self, station, engine, volume):
        log.info("Playing %s via %s (volume %d)", station.display_name, engine.name, volume)
        emit(self._on_event, 'started', station=station.to_dict(), engine=engine.name, volume=volume)
