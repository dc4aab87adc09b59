"""Inline control frames carried through a terminal byte stream.

Wire format (an OSC sequence the terminal would ignore anyway):

    ESC ] 8888 ;  <ACTION>[;<field>...]  BEL

    PLAY;<url>[;<volume>]     volume defaults to 70
    STOP
    VOLUME;<level>

Frames share the channel with arbitrary output, so decoding is done by
FrameParser, which keeps its match state between reads and can be fed
data split at any byte offset.
"""

import enum
import logging
from dataclasses import dataclass
from typing import NamedTuple

from .constants import (
    DEFAULT_VOLUME, FRAME_DELIMITER, FRAME_PREFIX, FRAME_SUFFIX, MAX_FRAME_BODY,
    MAX_VOLUME, MIN_VOLUME,
)
from .errors import FrameError, InvalidInput

log = logging.getLogger('termfm.interceptor')


class Action(str, enum.Enum):
    PLAY = 'PLAY'
    STOP = 'STOP'
    VOLUME = 'VOLUME'


@dataclass(frozen=True)
class ControlFrame:
    action: Action
    url: str | None = None
    volume: int | None = None

    @classmethod
    def play(cls, url, volume=DEFAULT_VOLUME):
        return cls(Action.PLAY, url=url, volume=volume)

    @classmethod
    def stop(cls):
        return cls(Action.STOP)

    @classmethod
    def set_volume(cls, level):
        return cls(Action.VOLUME, volume=level)

    def fields(self) -> list:
        if self.action is Action.PLAY:
            return [self.url, str(self.volume)]
        if self.action is Action.VOLUME:
            return [str(self.volume)]
        return []


def _check_volume(volume):
    if isinstance(volume, bool) or not isinstance(volume, int) \
            or not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise InvalidInput(f"volume must be between {MIN_VOLUME} and {MAX_VOLUME}")


def encode_frame(frame: ControlFrame) -> bytes:
    """Serialise a frame: prefix + ';'-joined payload + suffix."""
    if frame.action is Action.PLAY:
        url = frame.url or ''
        if not url:
            raise InvalidInput("PLAY needs a URL")
        if FRAME_DELIMITER in url or any(ord(c) < 0x20 or ord(c) == 0x7f for c in url):
            raise InvalidInput(f"URL cannot be sent in a control frame: {url!r}")
        _check_volume(frame.volume)
    elif frame.action is Action.VOLUME:
        _check_volume(frame.volume)
    payload = FRAME_DELIMITER.join([frame.action.value, *frame.fields()])
    try:
        body = payload.encode('ascii')
    except UnicodeEncodeError as e:
        raise InvalidInput(f"control frame payload must be ASCII: {payload!r}") from e
    return FRAME_PREFIX + body + FRAME_SUFFIX


def _parse_volume(text):
    if not text.isdigit():
        raise FrameError(f"volume is not a number: {text!r}")
    volume = int(text)
    if not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise FrameError(f"volume out of range: {volume}")
    return volume


def decode_payload(body: bytes) -> ControlFrame:
    """Turn a captured frame body into a ControlFrame or raise FrameError."""
    try:
        text = body.decode('ascii')
    except UnicodeDecodeError as e:
        raise FrameError("frame body is not ASCII") from e

    action, *fields = text.split(FRAME_DELIMITER)
    if action == Action.PLAY.value:
        if not fields or not fields[0]:
            raise FrameError("PLAY without URL")
        volume = DEFAULT_VOLUME
        if len(fields) >= 2 and fields[1]:
            volume = _parse_volume(fields[1])
        return ControlFrame.play(fields[0], volume)
    if action == Action.STOP.value:
        return ControlFrame.stop()
    if action == Action.VOLUME.value:
        if not fields:
            raise FrameError("VOLUME without level")
        return ControlFrame.set_volume(_parse_volume(fields[0]))
    raise FrameError(f"unsupported action: {action!r}")


class RawFrame(NamedTuple):
    """A complete frame body, still undecoded."""

    payload: bytes


class ParserState(enum.Enum):
    IDLE = 'idle'
    MATCHING_PREFIX = 'matching_prefix'
    CAPTURING_BODY = 'capturing_body'


class FrameParser:
    """Incremental scanner separating frames from pass-through bytes.

    feed() returns, in stream order, ``bytes`` chunks to display and
    RawFrame items.  Bytes that might be the start of a prefix are held
    back until the match either completes or fails.  The first byte of
    each marker must not occur again inside it, which makes restarting
    the match at the mismatching byte exact.

    A body ends at the suffix.  A non-printable byte or more than
    ``max_body`` bytes before it means the frame was never completed, and
    everything held back goes to the display.
    """

    def __init__(self, prefix=FRAME_PREFIX, suffix=FRAME_SUFFIX, max_body=MAX_FRAME_BODY):
        for marker in (prefix, suffix):
            if not marker or marker[0] in marker[1:]:
                raise ValueError(f"unsupported frame marker: {marker!r}")
        self.prefix = bytes(prefix)
        self.suffix = bytes(suffix)
        self.max_body = max_body
        self.state = ParserState.IDLE
        self._matched = 0           # prefix bytes matched so far
        self._suffix_matched = 0
        self._body = bytearray()

    def feed(self, data: bytes) -> list:
        events = []
        out = bytearray()
        prefix, suffix = self.prefix, self.suffix
        i, n = 0, len(data)

        while i < n:
            if self.state is ParserState.IDLE:
                j = data.find(prefix[:1], i)
                if j < 0:
                    out += data[i:]
                    break
                out += data[i:j]
                self._matched = 1
                self.state = ParserState.MATCHING_PREFIX
                i = j + 1
                if self._matched == len(prefix):
                    self._start_body()

            elif self.state is ParserState.MATCHING_PREFIX:
                if data[i] == prefix[self._matched]:
                    self._matched += 1
                    i += 1
                    if self._matched == len(prefix):
                        self._start_body()
                else:
                    # Not a frame after all: release the held bytes and
                    # rescan the current byte from idle.
                    out += prefix[:self._matched]
                    self._matched = 0
                    self.state = ParserState.IDLE

            else:
                b = data[i]
                if b == suffix[self._suffix_matched]:
                    self._suffix_matched += 1
                    i += 1
                    if self._suffix_matched == len(suffix):
                        if out:
                            events.append(bytes(out))
                            out.clear()
                        events.append(RawFrame(bytes(self._body)))
                        self._reset()
                elif self._suffix_matched:
                    self._body += suffix[:self._suffix_matched]
                    self._suffix_matched = 0
                elif not 0x20 <= b < 0x7f:
                    # Encoded bodies are printable ASCII: this was a
                    # truncated frame.  Release it and rescan the byte.
                    out += prefix + self._body
                    self._reset()
                else:
                    self._body.append(b)
                    i += 1
                    if len(self._body) > self.max_body:
                        log.warning("Control frame body over %d bytes, passing through",
                                    self.max_body)
                        out += prefix + self._body
                        self._reset()

        if out:
            events.append(bytes(out))
        return events

    def flush(self) -> bytes:
        """Release anything held back (call at end of stream)."""
        held = b''
        if self.state is ParserState.MATCHING_PREFIX:
            held = self.prefix[:self._matched]
        elif self.state is ParserState.CAPTURING_BODY:
            held = self.prefix + bytes(self._body) + self.suffix[:self._suffix_matched]
        self._reset()
        return held

    def _start_body(self):
        self.state = ParserState.CAPTURING_BODY
        self._matched = 0
        self._suffix_matched = 0
        self._body.clear()

    def _reset(self):
        self.state = ParserState.IDLE
        self._matched = 0
        self._suffix_matched = 0
        self._body = bytearray()
