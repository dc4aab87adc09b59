#!/usr/bin/env python3
"""
terminal-fm Radio Client (termfm-client)

Connects to a terminal-fm server over ssh and shows the remote UI in this
terminal.  Control frames the server embeds in its output are picked out
of the stream and played here with the local engine (mpv, ffplay or vlc);
everything else goes straight to the terminal.

Usage:
    radio_client.py [host[:port]]
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

# Ensure services/ is on the path for sibling imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from termfm.config import cfg
from termfm.playback import FrameInterceptor, create_player

logger = logging.getLogger('termfm.client')

DEFAULT_SERVER = "terminal-radio.com"


def ssh_arguments(target: str) -> list:
    """Turn ``host`` or ``host:port`` into ssh arguments."""
    host, sep, port = target.partition(":")
    if sep and port:
        return ["-p", port, host]
    return [host]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="terminal-fm radio client")
    parser.add_argument("server", nargs="?",
                        default=cfg("client", "server", default=DEFAULT_SERVER),
                        help="server to connect to, optionally host:port")
    return parser.parse_args(argv)


async def _terminate(proc, timeout=2.0):
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
        await asyncio.wait_for(proc.wait(), timeout)
    except ProcessLookupError:
        pass
    except asyncio.TimeoutError:
        proc.kill()


def _terminate_on_signal(proc, pending):
    """Signal handler that ends ssh; the task is kept in ``pending``."""
    def handler():
        task = asyncio.ensure_future(_terminate(proc))
        pending.add(task)
        task.add_done_callback(pending.discard)
    return handler


async def run(server: str) -> int:
    player = create_player("local")
    ssh = cfg("client", "ssh", default="ssh")
    argv = [ssh, *ssh_arguments(server)]
    logger.info("Connecting: %s", " ".join(argv))

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv, stdout=asyncio.subprocess.PIPE)
    except OSError as e:
        logger.error("Failed to start ssh: %s", e)
        return 1

    interceptor = FrameInterceptor(player, sys.stdout.buffer)
    pump = asyncio.create_task(interceptor.run(proc.stdout))

    loop = asyncio.get_running_loop()
    pending = set()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _terminate_on_signal(proc, pending))

    try:
        rc = await proc.wait()
        await pump
        if rc != 0:
            logger.warning("SSH exited with code %d", rc)
        return rc
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        if not pump.done():
            pump.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await player.cleanup()
        await player.supervisor.drain()


def main(argv=None) -> int:
    args = parse_args(argv)
    log_file = cfg("logging", "file")
    # stderr is the user's terminal; keep it quiet unless logging to a file.
    logging.basicConfig(
        level=str(cfg("logging", "level", default="INFO")).upper() if log_file else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        filename=log_file,
    )
    return asyncio.run(run(args.server))


if __name__ == "__main__":
    sys.exit(main())
