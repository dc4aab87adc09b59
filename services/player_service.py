#!/usr/bin/env python3
"""
terminal-fm Player Service (termfm-player)

Runs one playback session behind an HTTP + WebSocket API so a UI can drive
it.  The backend decides where the audio goes:

  local   – an engine (mpv/ffplay/vlc) on this machine
  stream  – raw PCM from ffmpeg written to stream.output ("-" = stdout)
  remote  – control frames written to stdout, i.e. into the SSH session,
            where radio_client.py plays them on the listener's machine

Port: 8780
"""

import argparse
import asyncio
import logging
import os
import sys

# Ensure services/ is on the path for sibling imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from termfm.config import cfg
from termfm.player_base import PlayerService
from termfm.playback import create_player

logger = logging.getLogger('termfm-player')


def open_output(path):
    """Binary sink for the stream backend."""
    if not path or path == "-":
        return sys.stdout.buffer
    return open(path, "ab", buffering=0)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="terminal-fm player service")
    parser.add_argument("--backend", choices=("local", "stream", "remote"),
                        default=cfg("player", "backend", default="local"))
    parser.add_argument("--host", default=cfg("service", "host", default="127.0.0.1"))
    parser.add_argument("--port", type=int, default=cfg("service", "port", default=8780))
    parser.add_argument("--output", default=cfg("stream", "output", default="-"),
                        help="PCM sink for the stream backend ('-' for stdout)")
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)
    service = PlayerService(host=args.host, port=args.port)

    sink = writer = None
    if args.backend == "stream":
        sink = open_output(args.output)
    elif args.backend == "remote":
        writer = sys.stdout.buffer

    service.player = create_player(args.backend, writer=writer, sink=sink,
                                   on_event=service.on_player_event)
    try:
        await service.run()
    finally:
        if sink is not None and sink is not sys.stdout.buffer:
            sink.close()


def cli():
    logging.basicConfig(
        level=getattr(logging, str(cfg("logging", "level", default="INFO")).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    asyncio.run(main())


if __name__ == "__main__":
    cli()
