"""External playback engines and how to invoke them.

Local playback probes ``mpv``, ``ffplay`` and ``vlc`` in priority order;
the stream player always uses ``ffmpeg`` to transcode to raw PCM.  None of
these engines can change volume while running, so the volume is baked
into the argv and a volume change means a restart.
"""

import logging
import shutil
from dataclasses import dataclass
from typing import Callable

from .constants import (
    ENGINE_PRIORITY, PCM_CHANNELS, PCM_CODEC, PCM_FORMAT, PCM_SAMPLE_RATE,
)
from .errors import EngineUnavailable

log = logging.getLogger('termfm.player')


@dataclass(frozen=True)
class Engine:
    """An engine executable plus its argv builder ``(url, volume) -> args``."""

    name: str
    executable: str
    build_args: Callable[[str, int], list]

    def resolve(self) -> str | None:
        """Full path of the executable, or None if it isn't installed."""
        return shutil.which(self.executable)

    def command(self, url: str, volume: int) -> list:
        path = self.resolve()
        if path is None:
            raise EngineUnavailable(f"{self.name} not found ({self.executable})")
        return [path, *self.build_args(url, volume)]


def _mpv_args(url, volume):
    return ['--no-video', '--really-quiet', f'--volume={volume}', url]


def _ffplay_args(url, volume):
    return ['-nodisp', '-loglevel', 'quiet', '-autoexit', '-volume', str(volume), url]


def _vlc_args(url, volume):
    return ['--intf', 'dummy', '--quiet', '--no-video', '--play-and-exit',
            '--volume', str(volume), url]


def _ffmpeg_pcm_args(url, volume):
    return [
        '-nostdin', '-loglevel', 'error',
        '-i', url,
        '-vn',
        '-f', PCM_FORMAT, '-acodec', PCM_CODEC,
        '-ar', str(PCM_SAMPLE_RATE), '-ac', str(PCM_CHANNELS),
        '-af', f'volume={volume / 100:.2f}',
        'pipe:1',
    ]


LOCAL_ENGINE_ARGS = {
    'mpv': _mpv_args,
    'ffplay': _ffplay_args,
    'vlc': _vlc_args,
}


def local_engines(names=None, paths=None) -> list:
    """Build the ordered local engine list.

    names  – priority order (default mpv, ffplay, vlc)
    paths  – optional {name: executable} overrides
    """
    paths = paths or {}
    engines = []
    for name in names or ENGINE_PRIORITY:
        build = LOCAL_ENGINE_ARGS.get(name)
        if build is None:
            log.warning("Unknown playback engine '%s', skipped", name)
            continue
        engines.append(Engine(name, paths.get(name) or name, build))
    return engines


def transcode_engine(ffmpeg_path='ffmpeg') -> Engine:
    return Engine('ffmpeg', ffmpeg_path or 'ffmpeg', _ffmpeg_pcm_args)


def select_engine(engines) -> Engine:
    """First installed engine wins."""
    for engine in engines:
        if engine.resolve():
            return engine
    names = ', '.join(e.name for e in engines) or 'none configured'
    raise EngineUnavailable(f"No audio player found ({names}). Please install one.")
