"""
PlayerService — HTTP + WebSocket control surface for one player session.

Wraps any Player (local, stream or remote) and exposes it to the UI:

    POST /player/play      {"url", "name"?, "id"?, "volume"?}
    POST /player/stop
    POST /player/volume    {"volume"}
    POST /player/cleanup
    GET  /player/state     -> {"state", "volume", "station"}
    GET  /ws               -> push of player events

Playback errors come back as {"status": "error", "error", "message"} with
400 (bad input), 503 (no engine) or 502 (engine/transport failure).
"""

import asyncio
import json
import logging
import signal

from aiohttp import web

from .playback import (
    EngineUnavailable, InvalidInput, PlaybackError, ProcessLaunchFailure,
    TransportFailure,
)
from .station import Station

log = logging.getLogger('termfm.service')

ERROR_STATUS = {
    InvalidInput: 400,
    EngineUnavailable: 503,
    ProcessLaunchFailure: 502,
    TransportFailure: 502,
}


def _error_status(exc):
    for cls, status in ERROR_STATUS.items():
        if isinstance(exc, cls):
            return status
    return 500


class PlayerService:
    def __init__(self, player=None, host="127.0.0.1", port=8780):
        self.player = player
        self.host = host
        self.port = port
        self._ws_clients: set[web.WebSocketResponse] = set()
        self._runner: web.AppRunner | None = None
        self._pending: set[asyncio.Task] = set()

    # ── Player events → WebSocket ──

    def on_player_event(self, event: str, data: dict):
        """Listener handed to the player; fans events out to WS clients."""
        if not self._ws_clients:
            return
        try:
            task = asyncio.get_running_loop().create_task(self.broadcast_event(event, data))
        except RuntimeError:
            return  # no loop (player used outside the service)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast_event(self, event: str, data: dict):
        """Push a player_event to all connected WebSocket clients."""
        if not self._ws_clients:
            return

        message = json.dumps({"type": "player_event", "event": event, "data": data})

        disconnected = set()
        for ws in self._ws_clients:
            try:
                await ws.send_str(message)
            except Exception:
                disconnected.add(ws)

        self._ws_clients -= disconnected
        log.debug("Broadcast %s to %d clients", event, len(self._ws_clients))

    def snapshot(self) -> dict:
        station = self.player.get_current_station()
        return {
            "state": self.player.get_state().value,
            "volume": self.player.get_volume(),
            "station": station.to_dict() if station else None,
        }

    # ── HTTP + WebSocket server ──

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_post("/player/play", self._handle_play)
        app.router.add_post("/player/stop", self._handle_stop)
        app.router.add_post("/player/volume", self._handle_volume)
        app.router.add_post("/player/cleanup", self._handle_cleanup)
        app.router.add_get("/player/state", self._handle_state)
        return app

    async def start(self):
        """Create the aiohttp app, start listening."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("Player service: HTTP + WebSocket on %s:%d", self.host, self.port)

    async def run(self):
        """Convenience entry-point: start + wait for signal + shutdown."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Stop playback and release the server."""
        try:
            await self.player.cleanup()
        except PlaybackError as e:
            log.warning("Cleanup on shutdown failed: %s", e)
        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # ── WebSocket handler ──

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        log.info("WebSocket client connected (%d total)", len(self._ws_clients))

        try:
            await ws.send_json({"type": "player_state", "data": self.snapshot()})
            # Push-only — ignore client messages
            async for msg in ws:
                pass
        finally:
            self._ws_clients.discard(ws)
            log.info("WebSocket client disconnected (%d remaining)",
                     len(self._ws_clients))

        return ws

    # ── HTTP route handlers ──

    async def _run(self, op, *args, **kwargs) -> web.Response:
        try:
            await op(*args, **kwargs)
        except PlaybackError as e:
            log.warning("%s failed: %s", op.__name__, e)
            return web.json_response(
                {"status": "error", "error": type(e).__name__, "message": str(e)},
                status=_error_status(e))
        return web.json_response({"status": "ok", **self.snapshot()})

    async def _handle_play(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
        except Exception:
            data = {}
        url = data.get("url") or ""
        station = Station(uuid=data.get("id", ""), name=data.get("name") or url, url=url)
        return await self._run(self.player.play, station, volume=data.get("volume"))

    async def _handle_stop(self, request: web.Request) -> web.Response:
        return await self._run(self.player.stop)

    async def _handle_volume(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
        except Exception:
            data = {}
        return await self._run(self.player.set_volume, data.get("volume"))

    async def _handle_cleanup(self, request: web.Request) -> web.Response:
        return await self._run(self.player.cleanup)

    async def _handle_state(self, request: web.Request) -> web.Response:
        return web.json_response(self.snapshot())


@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        resp = await handler(request)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return resp
