"""Shared test fixtures for LoadSurge test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from loadsurge._internal.config import LoadSurgeConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Target HTTP server
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _echo_handler(request: web.Request) -> web.Response:
    """Describe the received request; any method, any ``/echo`` sub-path."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": request.path,
            "content_type": request.content_type,
            "body_bytes": len(body),
            "body": body.decode("utf-8", errors="replace"),
            "x_headers": {k: v for k, v in request.headers.items() if k.lower().startswith("x-")},
        },
        headers={"X-Echo": "1"},
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Answer after ``?delay=`` seconds (default 0.1)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Answer with the ``?status=`` code (default 500)."""
    return web.json_response({"error": True}, status=int(request.query.get("status", "500")))


def _create_target_app() -> web.Application:
    app = web.Application()
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    return app


async def _start_target(port: int) -> web.AppRunner:
    """Serve the target app on 127.0.0.1:port and return its runner."""
    runner = web.AppRunner(_create_target_app())
    await runner.setup()
    await web.TCPSite(runner, "127.0.0.1", port).start()
    return runner


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def echo_server() -> AsyncIterator[str]:
    """Target server on the test's own event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    port = _get_free_port()
    runner = await _start_target(port)
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_echo_server() -> Iterator[str]:
    """Target server running its own loop in a background thread.

    The CLI calls ``asyncio.run`` itself, so the target cannot share the
    test's loop.
    """
    port = _get_free_port()
    started = threading.Event()
    loop = asyncio.new_event_loop()

    def _serve() -> None:
        asyncio.set_event_loop(loop)
        runner = loop.run_until_complete(_start_target(port))
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_serve, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5.0)


@pytest.fixture
def unused_url() -> str:
    """A URL on a port nothing listens on."""
    return f"http://127.0.0.1:{_get_free_port()}/"


@pytest.fixture
def fast_settings() -> LoadSurgeConfig:
    """Engine settings with short periods so runs finish in seconds."""
    return LoadSurgeConfig(
        tick_interval=0.1,
        report_interval=0.1,
        grace_period=0.5,
        sample_capacity=1_000,
        observer_buffer_size=64,
        request_timeout=2.0,
    )
