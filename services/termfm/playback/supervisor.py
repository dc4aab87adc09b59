"""Engine process supervision for one player session.

Every launched process is wrapped in a ProcessHandle tagged with the
session's next generation number.  The monitor task that awaits the
process only resets the session if that handle is still the current one,
so a slow-to-die engine from an earlier play can never clobber newer
playback.

Callers must hold ``session.lock`` around launch(), stop_locked() and
kill_locked().  The monitor takes the same lock for its reconcile step.
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass, field

from .constants import PUMP_CHUNK, TERMINATE_TIMEOUT
from .contract import PlaybackState, emit
from .errors import ProcessLaunchFailure

log = logging.getLogger('termfm.supervisor')


@dataclass
class ProcessHandle:
    generation: int
    process: asyncio.subprocess.Process
    argv: list
    monitor: asyncio.Task | None = None
    pump: asyncio.Task | None = None
    terminating: bool = False
    exited: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def pid(self):
        return self.process.pid


class ProcessSupervisor:
    """Starts, watches and terminates the engine process of one session."""

    def __init__(self, session, terminate_timeout=TERMINATE_TIMEOUT,
                 on_event=None, label='engine'):
        self.session = session
        self.terminate_timeout = terminate_timeout
        self.label = label
        self._on_event = on_event
        self._tasks: set[asyncio.Task] = set()

    # -- task bookkeeping --

    def _spawn(self, coro, name):
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self):
        """Wait for every monitor, pump and escalation task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- lifecycle (caller holds session.lock) --

    async def launch(self, station, argv, sink=None, sink_fd=None):
        """Start ``argv`` as the session's current process.

        sink     – writable that receives stdout via a pump task
        sink_fd  – file descriptor to hand to the process as stdout
        Neither: stdout is discarded.
        """
        session = self.session
        session.generation += 1
        generation = session.generation

        if sink_fd is not None:
            stdout = sink_fd
        elif sink is not None:
            stdout = asyncio.subprocess.PIPE
        else:
            stdout = asyncio.subprocess.DEVNULL

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            log.error("Failed to start %s: %s", self.label, e)
            session.reset()
            emit(self._on_event, 'launch_failed', argv=list(argv), error=str(e))
            raise ProcessLaunchFailure(f"failed to start {argv[0]}: {e}") from e

        handle = ProcessHandle(generation, process, list(argv))
        session.handle = handle
        session.station = station
        session.state = PlaybackState.PLAYING
        if sink is not None and sink_fd is None:
            handle.pump = self._spawn(self._pump(handle, sink), f'{self.label}-pump-{generation}')
        handle.monitor = self._spawn(self._monitor(handle), f'{self.label}-monitor-{generation}')
        log.info("Started %s pid=%d gen=%d", self.label, process.pid, generation)
        return handle

    def stop_locked(self) -> bool:
        """Mark the session stopped and signal its process.  Never waits.

        Returns True if there was a process to signal.
        """
        session = self.session
        handle = session.handle
        session.reset()
        if handle is None:
            return False
        self._terminate(handle)
        return True

    def kill_locked(self) -> bool:
        """Force-kill the current process and reset the session."""
        session = self.session
        handle = session.handle
        session.reset()
        if handle is None:
            return False
        self._kill(handle)
        return True

    # -- signalling --

    def _terminate(self, handle):
        if handle.process.returncode is not None or handle.terminating:
            return
        handle.terminating = True
        try:
            handle.process.terminate()
        except ProcessLookupError:
            return
        except OSError as e:
            log.warning("SIGTERM to pid %d failed (%s), killing", handle.pid, e)
            self._kill(handle)
            return
        self._spawn(self._escalate(handle), f'{self.label}-escalate-{handle.generation}')

    def _kill(self, handle):
        if handle.process.returncode is not None:
            return
        try:
            handle.process.kill()
        except ProcessLookupError:
            pass

    async def _escalate(self, handle):
        try:
            await asyncio.wait_for(handle.exited.wait(), self.terminate_timeout)
        except asyncio.TimeoutError:
            log.warning("%s pid=%d ignored SIGTERM for %.1fs, killing",
                        self.label, handle.pid, self.terminate_timeout)
            self._kill(handle)

    # -- background tasks --

    async def _pump(self, handle, sink):
        """Copy process stdout into the sink while this generation is current."""
        reader = handle.process.stdout
        try:
            while True:
                chunk = await reader.read(PUMP_CHUNK)
                if not chunk:
                    break
                if self.session.handle is not handle:
                    continue  # superseded: drain and discard
                sink.write(chunk)
                drain = getattr(sink, 'drain', None)
                if drain is not None:
                    await drain()
        except (OSError, ConnectionError) as e:
            log.warning("Output sink failed for %s gen=%d: %s, stopping",
                        self.label, handle.generation, e)
            self._kill(handle)

    async def _monitor(self, handle):
        returncode = await handle.process.wait()
        handle.exited.set()
        if handle.pump is not None:
            await asyncio.gather(handle.pump, return_exceptions=True)

        async with self.session.lock:
            current = self.session.handle
            is_current = current is not None and current.generation == handle.generation
            if is_current:
                self.session.reset()

        if is_current:
            log.info("%s pid=%d exited (rc=%s), session stopped",
                     self.label, handle.pid, returncode)
        else:
            log.debug("%s pid=%d gen=%d exited (rc=%s) after being superseded",
                      self.label, handle.pid, handle.generation, returncode)
        emit(self._on_event, 'exited', generation=handle.generation,
             returncode=returncode, current=is_current)
