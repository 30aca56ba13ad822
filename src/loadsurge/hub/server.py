"""aiohttp websocket transport for the broadcast hub.

Routes:
    GET /ws       websocket, optional ``?client_id=`` query parameter
    GET /health   JSON liveness probe

Each websocket gets one observer.  A writer task pumps the observer's
buffer to the socket while the handler reads inbound commands; whichever
side fails first unregisters the observer.
"""

from __future__ import annotations

import asyncio
import contextlib

from aiohttp import WSCloseCode, WSMsgType, web

from loadsurge._internal.errors import EngineError, LifecycleError
from loadsurge._internal.logging import get_logger
from loadsurge.hub.events import SERVER_STATUS_RUNNING
from loadsurge.hub.hub import BroadcastHub, Observer

logger = get_logger("hub.server")

HUB_KEY = web.AppKey("hub", BroadcastHub)

_HEARTBEAT_SECONDS = 30.0


async def _health_handler(request: web.Request) -> web.Response:
    hub = request.app[HUB_KEY]
    return web.json_response(
        {
            "status": "ok" if hub.is_running else "stopped",
            "server_status": SERVER_STATUS_RUNNING if hub.is_running else "stopped",
            "connected_observers": hub.observer_count,
        }
    )


async def _websocket_handler(request: web.Request) -> web.WebSocketResponse:
    hub = request.app[HUB_KEY]
    ws = web.WebSocketResponse(heartbeat=_HEARTBEAT_SECONDS)
    await ws.prepare(request)

    try:
        observer = hub.register(request.query.get("client_id"))
    except LifecycleError as exc:
        await ws.close(code=WSCloseCode.TRY_AGAIN_LATER, message=str(exc).encode())
        return ws

    writer = asyncio.create_task(
        _pump(ws, observer, hub), name=f"observer-writer-{observer.observer_id}"
    )
    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                hub.handle_message(observer, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning(
                    "Websocket error for observer %s: %s", observer.observer_id, ws.exception()
                )
                break
    finally:
        hub.unregister(observer.observer_id)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer

    return ws


async def _pump(ws: web.WebSocketResponse, observer: Observer, hub: BroadcastHub) -> None:
    """Forward buffered messages until the end marker or a write failure."""
    while True:
        message = await observer.receive()
        if message is None:
            break
        try:
            await ws.send_str(message)
        except (ConnectionError, RuntimeError):
            logger.debug("Write to observer %s failed", observer.observer_id, exc_info=True)
            break

    hub.unregister(observer.observer_id)
    await ws.close()


async def _on_shutdown(app: web.Application) -> None:
    app[HUB_KEY].shutdown()


def create_app(hub: BroadcastHub) -> web.Application:
    """Build the aiohttp application serving *hub*.

    The hub is shut down together with the application.
    """
    app = web.Application()
    app[HUB_KEY] = hub
    app.router.add_get("/ws", _websocket_handler)
    app.router.add_get("/health", _health_handler)
    app.on_shutdown.append(_on_shutdown)
    return app


class HubServer:
    """Runs the hub application on a TCP port.

    Attributes:
        hub: The hub being served.
        host: Interface to bind.
    """

    def __init__(self, hub: BroadcastHub, host: str = "127.0.0.1", port: int = 8089) -> None:
        self.hub = hub
        self.host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def port(self) -> int:
        """Return the bound port, resolved after :meth:`start` when 0 was given."""
        if self._runner is not None and self._runner.addresses:
            return int(self._runner.addresses[0][1])
        return self._port

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}/ws"

    async def start(self) -> None:
        """Start the hub and begin listening.

        Raises:
            EngineError: If the port cannot be bound.
        """
        self.hub.start()
        self._runner = web.AppRunner(create_app(self.hub))
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self._port)
        try:
            await site.start()
        except OSError as exc:
            await self.stop()
            msg = f"cannot listen on {self.host}:{self._port}: {exc.strerror or exc}"
            raise EngineError(msg) from exc
        logger.info("Hub listening on %s", self.url)

    async def stop(self) -> None:
        """Stop listening and shut the hub down."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Hub server stopped")
