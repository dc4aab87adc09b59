"""Tests for termfm/playback/codec.py — control frame encoding and the incremental parser."""

import pytest

from termfm.playback.codec import (
    Action, ControlFrame, FrameParser, ParserState, RawFrame, decode_payload, encode_frame,
)
from termfm.playback.errors import FrameError, InvalidInput

PREFIX = b"\x1b]8888;"
BEL = b"\x07"


def frames_and_text(events):
    """Split parser output into (display bytes, frame payloads)."""
    text = b"".join(e for e in events if isinstance(e, bytes))
    frames = [e.payload for e in events if isinstance(e, RawFrame)]
    return text, frames


# --- Encoding ---


class TestEncode:
    def test_play(self):
        assert encode_frame(ControlFrame.play("http://x/stream", 55)) == \
            PREFIX + b"PLAY;http://x/stream;55" + BEL

    def test_play_default_volume(self):
        assert encode_frame(ControlFrame.play("http://x/s")).endswith(b";70" + BEL)

    def test_stop(self):
        assert encode_frame(ControlFrame.stop()) == PREFIX + b"STOP" + BEL

    def test_volume(self):
        assert encode_frame(ControlFrame.set_volume(0)) == PREFIX + b"VOLUME;0" + BEL

    @pytest.mark.parametrize("url", ["", "http://x/a;b", "http://x/\x07", "http://x/\x1b]"])
    def test_rejects_unsendable_urls(self, url):
        with pytest.raises(InvalidInput):
            encode_frame(ControlFrame.play(url, 50))

    def test_rejects_non_ascii_url(self):
        with pytest.raises(InvalidInput):
            encode_frame(ControlFrame.play("http://radio.example/müsik", 50))

    @pytest.mark.parametrize("volume", [-1, 101, True, "50"])
    def test_rejects_bad_volume(self, volume):
        with pytest.raises(InvalidInput):
            encode_frame(ControlFrame.set_volume(volume))


# --- Decoding ---


class TestDecode:
    def test_play_with_volume(self):
        frame = decode_payload(b"PLAY;http://x/stream;55")
        assert frame == ControlFrame(Action.PLAY, url="http://x/stream", volume=55)

    def test_play_volume_defaults_to_70(self):
        assert decode_payload(b"PLAY;http://x/stream").volume == 70

    def test_play_empty_volume_field_defaults(self):
        assert decode_payload(b"PLAY;http://x/stream;").volume == 70

    def test_stop(self):
        assert decode_payload(b"STOP") == ControlFrame.stop()

    def test_volume(self):
        assert decode_payload(b"VOLUME;100") == ControlFrame.set_volume(100)

    @pytest.mark.parametrize("body", [
        b"", b"PAUSE", b"play;http://x", b"PLAY", b"PLAY;", b"PLAY;http://x;loud",
        b"PLAY;http://x;101", b"VOLUME", b"VOLUME;-5", b"VOLUME;abc", b"STOP\xff",
    ])
    def test_malformed(self, body):
        with pytest.raises(FrameError):
            decode_payload(body)

    def test_encoded_frame_body_decodes_back(self):
        frame = ControlFrame.play("http://ice.example:8000/live.mp3", 33)
        wire = encode_frame(frame)
        assert decode_payload(wire[len(PREFIX):-1]) == frame


# --- Incremental parser ---


WIRE = PREFIX + b"PLAY;http://x/stream;55" + BEL


class TestFrameParser:
    def test_plain_text_passes_through(self):
        parser = FrameParser()
        assert parser.feed(b"hello \x1b[1mworld\x1b[0m") == [b"hello \x1b[1mworld\x1b[0m"]
        assert parser.state is ParserState.IDLE

    def test_single_frame(self):
        text, frames = frames_and_text(FrameParser().feed(b"ab" + WIRE + b"cd"))
        assert text == b"abcd"
        assert frames == [b"PLAY;http://x/stream;55"]

    def test_order_is_kept(self):
        events = FrameParser().feed(b"one" + WIRE + b"two")
        assert events == [b"one", RawFrame(b"PLAY;http://x/stream;55"), b"two"]

    @pytest.mark.parametrize("split", range(len(WIRE) + 1))
    def test_split_anywhere(self, split):
        parser = FrameParser()
        events = parser.feed(WIRE[:split]) + parser.feed(WIRE[split:])
        text, frames = frames_and_text(events)
        assert text == b""
        assert [decode_payload(f) for f in frames] == [ControlFrame.play("http://x/stream", 55)]

    def test_byte_at_a_time(self):
        parser = FrameParser()
        stream = b"x" + WIRE + b"y" + PREFIX + b"STOP" + BEL + b"z"
        events = []
        for i in range(len(stream)):
            events += parser.feed(stream[i:i + 1])
        text, frames = frames_and_text(events)
        assert text == b"xyz"
        assert frames == [b"PLAY;http://x/stream;55", b"STOP"]

    def test_partial_prefix_is_flushed_on_mismatch(self):
        parser = FrameParser()
        assert parser.feed(b"\x1b]88") == []
        assert parser.state is ParserState.MATCHING_PREFIX
        assert parser.feed(b"X") == [b"\x1b]88X"]
        assert parser.state is ParserState.IDLE

    def test_other_osc_sequences_pass_through(self):
        title = b"\x1b]0;my title\x07"
        text, frames = frames_and_text(FrameParser().feed(title))
        assert text == title
        assert frames == []

    def test_escape_restarts_match(self):
        """An ESC that breaks a partial match can itself start a frame."""
        stream = b"\x1b]8" + WIRE
        text, frames = frames_and_text(FrameParser().feed(stream))
        assert text == b"\x1b]8"
        assert frames == [b"PLAY;http://x/stream;55"]

    def test_multiple_frames_interleaved(self):
        stream = b"\x1b[2J" + PREFIX + b"STOP" + BEL + b"menu\r\n" + WIRE + b"\x1b[H" + \
            PREFIX + b"VOLUME;20" + BEL
        text, frames = frames_and_text(FrameParser().feed(stream))
        assert text == b"\x1b[2Jmenu\r\n\x1b[H"
        assert frames == [b"STOP", b"PLAY;http://x/stream;55", b"VOLUME;20"]

    def test_flush_releases_held_prefix(self):
        parser = FrameParser()
        assert parser.feed(b"abc\x1b]88") == [b"abc"]
        assert parser.flush() == b"\x1b]88"
        assert parser.state is ParserState.IDLE

    def test_flush_releases_unterminated_body(self):
        parser = FrameParser()
        parser.feed(PREFIX + b"PLAY;http")
        assert parser.flush() == PREFIX + b"PLAY;http"

    def test_oversized_body_passes_through(self):
        parser = FrameParser(max_body=16)
        body = b"A" * 17
        text, frames = frames_and_text(parser.feed(PREFIX + body + b"tail"))
        assert frames == []
        assert text == PREFIX + body + b"tail"
        assert parser.state is ParserState.IDLE

    def test_truncated_frame_does_not_swallow_output(self):
        """A frame cut short by an escape sequence releases what followed it."""
        stream = PREFIX + b"PLA" + b"menu line\x1b]0;title\x07more ui" + PREFIX + b"STOP" + BEL
        text, frames = frames_and_text(FrameParser().feed(stream))
        assert text == PREFIX + b"PLAmenu line\x1b]0;title\x07more ui"
        assert frames == [b"STOP"]

    @pytest.mark.parametrize("split", range(1, 40))
    def test_truncated_frame_split_anywhere(self, split):
        stream = PREFIX + b"PLA\r\nprompt> " + WIRE
        parser = FrameParser()
        text, frames = frames_and_text(parser.feed(stream[:split]) + parser.feed(stream[split:]))
        assert text == PREFIX + b"PLA\r\nprompt> "
        assert frames == [b"PLAY;http://x/stream;55"]

    def test_non_ascii_in_body_abandons_frame(self):
        text, frames = frames_and_text(FrameParser().feed(PREFIX + b"ST\xc3\xa9OP" + BEL))
        assert text == PREFIX + b"ST\xc3\xa9OP" + BEL
        assert frames == []

    def test_multibyte_suffix_matched_incrementally(self):
        parser = FrameParser(prefix=b"<{", suffix=b"]>")
        events = parser.feed(b"a<{STO") + parser.feed(b"P]x]") + parser.feed(b">b")
        text, frames = frames_and_text(events)
        assert text == b"ab"
        assert frames == [b"STOP]x"]

    @pytest.mark.parametrize("marker", [b"", b"aba"])
    def test_rejects_self_overlapping_markers(self, marker):
        with pytest.raises(ValueError):
            FrameParser(prefix=marker)
