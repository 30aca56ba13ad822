"""Instrumented HTTP request executor with auto-timing."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import aiohttp

from loadsurge._internal.errors import TransportError
from loadsurge._internal.logging import get_logger
from loadsurge.engine.validation import ResponseValidator
from loadsurge.engine.variables import VariableResolver, has_placeholders
from loadsurge.metrics.models import RequestOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping

    from loadsurge.simulation.models import SimulationConfig

logger = get_logger("engine.executor")


class RequestExecutor:
    """Sends the configured request and turns the result into an outcome.

    Wraps one ``aiohttp.ClientSession`` per run.  Every call is auto-timed
    and produces exactly one ``RequestOutcome``: network errors, rejected
    statuses, failed response checks and timeouts are all recovered here
    and never raised, so a failing target cannot unwind the tick loop.
    Only task cancellation propagates.

    ``{{name}}`` placeholders in the URL, header values, body and form
    fields are expanded again for every request.

    Attributes:
        config: The simulation whose request is executed.
    """

    def __init__(self, config: SimulationConfig) -> None:
        """Initialize the executor.

        Args:
            config: Simulation configuration supplying URL, method, headers,
                body, templates, response checks and timeout.
        """
        self.config = config
        self._headers: dict[str, str] = dict(config.headers)
        if config.body is not None and config.content_type:
            self._headers.setdefault("Content-Type", config.content_type)
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        self._session: aiohttp.ClientSession | None = None
        self._validator = ResponseValidator(config.validation)
        self._resolver = VariableResolver(config.variables)
        templates = [config.target_url, config.body, *self._headers.values()]
        if config.form_data is not None:
            templates.extend(config.form_data.values())
        self._templated = any(has_placeholders(t) for t in templates)

    async def __aenter__(self) -> RequestExecutor:
        """Open the underlying aiohttp session."""
        # The worker pool bounds concurrency; lift aiohttp's default limit of 100
        connector = aiohttp.TCPConnector(limit=self.config.concurrent_users)
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=connector,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(self) -> RequestOutcome:
        """Send one request and return its outcome.

        Returns:
            The outcome; ``success`` is True only for an accepted status
            (any 2xx unless the response checks list codes) that passed
            every configured check.

        Raises:
            RuntimeError: If the executor is used outside of an async
                context manager.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        start = time.monotonic()
        try:
            status_code, headers, payload = await self._send()
            latency_ms = (time.monotonic() - start) * 1000
            self._validate(status_code, headers, payload, latency_ms)
        except TransportError as exc:
            return self._failure(start, str(exc), exc.kind, exc.status_code)
        except (asyncio.TimeoutError, aiohttp.ServerTimeoutError):
            msg = f"request timed out after {self.config.request_timeout:g}s"
            return self._failure(start, msg, "timeout")
        except (aiohttp.ClientError, OSError) as exc:
            logger.debug("Request to %s failed", self.config.target_url, exc_info=True)
            return self._failure(start, f"{type(exc).__name__}: {exc}", "transport")

        return RequestOutcome(
            timestamp=time.time(),
            latency_ms=latency_ms,
            success=True,
            status_code=status_code,
            content_length=len(payload),
        )

    async def probe(self) -> None:
        """Send one reachability request.

        Any HTTP response counts as reachable; only a missing response is
        an error.

        Raises:
            TransportError: If the target could not be reached.
        """
        try:
            await self._send()
        except (asyncio.TimeoutError, aiohttp.ServerTimeoutError) as exc:
            msg = f"target {self.config.target_url} did not answer in time"
            raise TransportError(msg, kind="timeout") from exc
        except (aiohttp.ClientError, OSError) as exc:
            msg = f"target {self.config.target_url} is unreachable: {exc}"
            raise TransportError(msg) from exc

    def _validate(
        self,
        status_code: int,
        headers: Mapping[str, str],
        payload: bytes,
        latency_ms: float,
    ) -> None:
        validator = self._validator
        if not validator.explicit_status and not validator.status_ok(status_code):
            msg = f"HTTP {status_code}"
            raise TransportError(msg, kind="status", status_code=status_code)
        if self.config.validation is None:
            return
        failures = validator.check(status_code, headers, payload, latency_ms)
        if failures:
            msg = "; ".join(failures)
            raise TransportError(msg, kind="validation", status_code=status_code)

    async def _send(self) -> tuple[int, Mapping[str, str], bytes]:
        if self._session is None:
            msg = "RequestExecutor must be used as an async context manager"
            raise RuntimeError(msg)

        config = self.config
        url, headers = config.target_url, self._headers
        data: str | dict[str, str] | None = config.body
        if config.form_data is not None:
            data = config.form_data
        if self._templated:
            resolver = self._resolver
            url = resolver.resolve(url)
            headers = resolver.resolve_mapping(headers)
            if isinstance(data, dict):
                data = resolver.resolve_mapping(data)
            elif data is not None:
                data = resolver.resolve(data)

        async with self._session.request(config.method, url, headers=headers, data=data) as resp:
            payload = await resp.read()
            return resp.status, resp.headers, payload

    def _failure(
        self,
        start: float,
        error: str,
        kind: str,
        status_code: int = 0,
    ) -> RequestOutcome:
        return RequestOutcome(
            timestamp=time.time(),
            latency_ms=(time.monotonic() - start) * 1000,
            success=False,
            status_code=status_code,
            error=error,
            error_kind=kind,
        )
