"""Constants shared by the playback components."""

DEFAULT_VOLUME = 70
MIN_VOLUME = 0
MAX_VOLUME = 100

# Seconds between SIGTERM and SIGKILL when stopping an engine.
TERMINATE_TIMEOUT = 2.0

# Engines probed for local playback, first available wins.
ENGINE_PRIORITY = ['mpv', 'ffplay', 'vlc']

# Raw PCM produced by the transcoder: CD quality, signed 16-bit LE.
PCM_FORMAT = 's16le'
PCM_CODEC = 'pcm_s16le'
PCM_SAMPLE_RATE = 44100
PCM_CHANNELS = 2

# Inline control frames: OSC 8888 ... BEL
FRAME_PREFIX = b'\x1b]8888;'
FRAME_SUFFIX = b'\x07'
FRAME_DELIMITER = ';'
MAX_FRAME_BODY = 2048

PUMP_CHUNK = 64 * 1024
READ_CHUNK = 4096
