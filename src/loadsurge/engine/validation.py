"""Response checks applied to every answered request."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

from loadsurge.simulation.models import ResponseValidation

if TYPE_CHECKING:
    from collections.abc import Mapping


class ResponseValidator:
    """Evaluates one run's :class:`ResponseValidation` rules.

    Built once per run; :meth:`check` is called for every response and
    returns the failed checks as human-readable messages.

    Attributes:
        rules: The rules being applied.
    """

    def __init__(self, rules: ResponseValidation | None = None) -> None:
        self.rules = rules or ResponseValidation()
        self._regex = re.compile(self.rules.body_regex) if self.rules.body_regex else None
        self._reads_body = bool(
            rules is not None
            and (
                rules.body_contains
                or rules.body_not_contains
                or rules.body_regex
                or rules.json_body
            )
        )

    @property
    def explicit_status(self) -> bool:
        """Return True if the rules list accepted status codes."""
        return bool(self.rules.status_codes)

    def status_ok(self, status_code: int) -> bool:
        """Return True if *status_code* is accepted.

        Without explicit status codes any 2xx is accepted.
        """
        if self.rules.status_codes:
            return status_code in self.rules.status_codes
        return 200 <= status_code < 300

    def check(
        self,
        status_code: int,
        headers: Mapping[str, str],
        body: bytes,
        latency_ms: float,
    ) -> list[str]:
        """Return every failed check, in rule order; empty means valid."""
        rules = self.rules
        failures: list[str] = []

        if not self.status_ok(status_code):
            expected = ", ".join(str(c) for c in rules.status_codes) or "2xx"
            failures.append(f"status {status_code} not in expected {expected}")

        for name, expected in rules.headers.items():
            actual = headers.get(name)
            if actual != expected:
                failures.append(f"header {name} expected {expected!r}, got {actual!r}")

        if rules.content_type is not None:
            actual = headers.get("Content-Type", "")
            if rules.content_type not in actual:
                failures.append(
                    f"content type {actual!r} does not contain {rules.content_type!r}"
                )

        if rules.max_response_time_ms is not None and latency_ms > rules.max_response_time_ms:
            failures.append(
                f"response time {latency_ms:.1f}ms exceeded {rules.max_response_time_ms:g}ms"
            )

        size = len(body)
        if rules.min_body_bytes is not None and size < rules.min_body_bytes:
            failures.append(f"body size {size} is below minimum {rules.min_body_bytes}")
        if rules.max_body_bytes is not None and size > rules.max_body_bytes:
            failures.append(f"body size {size} exceeds maximum {rules.max_body_bytes}")

        if self._reads_body:
            failures.extend(self._check_body(body.decode("utf-8", errors="replace")))
        return failures

    def _check_body(self, text: str) -> list[str]:
        rules = self.rules
        failures = [f"body does not contain {s!r}" for s in rules.body_contains if s not in text]
        failures.extend(
            f"body contains forbidden {s!r}" for s in rules.body_not_contains if s in text
        )
        if self._regex is not None and self._regex.search(text) is None:
            failures.append(f"body does not match {self._regex.pattern!r}")
        if rules.json_body:
            try:
                json.loads(text)
            except ValueError as exc:
                failures.append(f"body is not valid JSON: {exc}")
        return failures
