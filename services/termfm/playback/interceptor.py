"""Client-side frame interceptor.

Reads the session's output, writes everything that isn't a control frame
to the real terminal straight away, and hands decoded frames to a player.
Frames are applied one at a time by a dispatcher task so that a slow
engine start never holds up the display.
"""

import asyncio
import logging

from ..station import Station
from .codec import Action, FrameParser, RawFrame, decode_payload
from .constants import READ_CHUNK
from .errors import FrameError, PlaybackError

log = logging.getLogger('termfm.interceptor')


class FrameInterceptor:
    """Splits a mixed byte stream into display output and player commands.

    display – binary writable with optional flush() (e.g. sys.stdout.buffer)
    player  – anything implementing the Player contract
    """

    def __init__(self, player, display, parser=None):
        self.player = player
        self.display = display
        self.parser = parser or FrameParser()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._dispatch_loop(), name='frame-dispatch')

    def feed(self, data: bytes):
        """Process one read: forward display bytes, queue complete frames."""
        for event in self.parser.feed(data):
            if isinstance(event, RawFrame):
                self._enqueue(event)
            else:
                self.display.write(event)
        self._flush_display()

    async def run(self, reader, chunk_size=READ_CHUNK):
        """Pump ``reader`` (an asyncio.StreamReader) until EOF."""
        self.start()
        try:
            while True:
                data = await reader.read(chunk_size)
                if not data:
                    break
                self.feed(data)
        finally:
            held = self.parser.flush()
            if held:
                self.display.write(held)
                self._flush_display()
        await self.close()

    async def close(self):
        """Apply queued frames, then stop the dispatcher."""
        if self._worker is None:
            return
        if not self._worker.done():
            await self._queue.join()
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    def _flush_display(self):
        flush = getattr(self.display, 'flush', None)
        if flush is not None:
            flush()

    def _enqueue(self, raw):
        try:
            frame = decode_payload(raw.payload)
        except FrameError as e:
            log.info("Ignoring control frame %r: %s", raw.payload[:64], e)
            return
        log.debug("Control frame: %s", frame)
        self._queue.put_nowait(frame)

    async def _dispatch_loop(self):
        while True:
            frame = await self._queue.get()
            try:
                await self.apply(frame)
            except PlaybackError as e:
                log.warning("%s failed: %s", frame.action.value, e)
            except Exception:
                log.exception("Unexpected error applying %s", frame.action.value)
            finally:
                self._queue.task_done()

    async def apply(self, frame):
        if frame.action is Action.PLAY:
            await self.player.play(Station.from_url(frame.url), volume=frame.volume)
        elif frame.action is Action.STOP:
            await self.player.stop()
        elif frame.action is Action.VOLUME:
            await self.player.set_volume(frame.volume)
