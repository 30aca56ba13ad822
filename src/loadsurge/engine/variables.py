"""``{{name}}`` placeholder substitution for request templates.

Static variables from the configuration win over built-in generators.
Placeholders naming neither are left untouched, so a literal ``{{x}}``
the target expects still goes out as written.

Built-in generators:
    uuid, uuid_short                   random identifiers
    timestamp, timestamp_ms            Unix time in seconds / milliseconds
    iso_timestamp, date, time, datetime
    random_int, random_float, random_bool, random_string
    random_email, random_phone
    first_name, last_name, full_name, username
    company, domain, country, city, zipcode
    status, priority, category
"""

from __future__ import annotations

import random
import re
import string
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_FIRST_NAMES = ("John", "Jane", "Michael", "Sarah", "David", "Lisa", "Robert", "Emily")
_LAST_NAMES = ("Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis")
_COMPANIES = ("TechCorp", "DataSystems", "CloudWorks", "InnovateLab", "DevHub", "WebForge")
_TLDS = (".com", ".org", ".net", ".io")
_MAIL_DOMAINS = ("example.com", "example.org", "test.org")
_COUNTRIES = ("USA", "Canada", "UK", "Germany", "France", "Japan", "Australia", "Brazil")
_CITIES = ("New York", "Chicago", "Houston", "Phoenix", "San Diego", "Dallas", "Austin")
_STATUSES = ("active", "inactive", "pending", "completed", "failed", "processing")
_PRIORITIES = ("low", "medium", "high", "critical")
_CATEGORIES = ("technology", "business", "finance", "healthcare", "education", "retail")
_ALPHANUMERIC = string.ascii_letters + string.digits


def has_placeholders(text: str | None) -> bool:
    """Return True if *text* contains at least one ``{{name}}`` placeholder."""
    return text is not None and _PLACEHOLDER.search(text) is not None


class VariableResolver:
    """Expands ``{{name}}`` placeholders, fresh values on every call.

    Args:
        variables: Static values, looked up before the generators.
        rng: Random source for the generators.  A private one by default;
            pass a seeded ``random.Random`` for reproducible output.

    Example::

        resolver = VariableResolver({"tenant": "acme"})
        resolver.resolve("/orgs/{{tenant}}/users/{{uuid}}")
    """

    def __init__(
        self,
        variables: Mapping[str, str] | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._variables = dict(variables or {})
        self._rng = rng or random.Random()
        self._functions: dict[str, Callable[[], str]] = {
            "uuid": lambda: str(uuid.uuid4()),
            "uuid_short": lambda: uuid.uuid4().hex,
            "timestamp": lambda: str(int(time.time())),
            "timestamp_ms": lambda: str(int(time.time() * 1000)),
            "iso_timestamp": lambda: _now().isoformat(timespec="seconds"),
            "date": lambda: _now().strftime("%Y-%m-%d"),
            "time": lambda: _now().strftime("%H:%M:%S"),
            "datetime": lambda: _now().strftime("%Y-%m-%d %H:%M:%S"),
            "random_int": lambda: str(self._rng.randrange(1_000_000)),
            "random_float": lambda: f"{self._rng.uniform(0, 100):.2f}",
            "random_bool": lambda: "true" if self._rng.random() < 0.5 else "false",
            "random_string": self._random_string,
            "random_email": self._random_email,
            "random_phone": self._random_phone,
            "first_name": lambda: self._rng.choice(_FIRST_NAMES),
            "last_name": lambda: self._rng.choice(_LAST_NAMES),
            "full_name": lambda: f"{self.generate('first_name')} {self.generate('last_name')}",
            "username": self._username,
            "company": lambda: self._rng.choice(_COMPANIES),
            "domain": lambda: self.generate("company").lower() + self._rng.choice(_TLDS),
            "country": lambda: self._rng.choice(_COUNTRIES),
            "city": lambda: self._rng.choice(_CITIES),
            "zipcode": lambda: f"{self._rng.randrange(100_000):05d}",
            "status": lambda: self._rng.choice(_STATUSES),
            "priority": lambda: self._rng.choice(_PRIORITIES),
            "category": lambda: self._rng.choice(_CATEGORIES),
        }

    def names(self) -> list[str]:
        """Return every name a placeholder can use, sorted."""
        return sorted(set(self._functions) | set(self._variables))

    def register(self, name: str, generator: Callable[[], str]) -> None:
        """Add or replace a generator."""
        self._functions[name] = generator

    def generate(self, name: str) -> str:
        """Return a fresh value for *name*.

        Raises:
            KeyError: If *name* is neither a variable nor a generator.
        """
        if name in self._variables:
            return self._variables[name]
        return self._functions[name]()

    def resolve(self, text: str) -> str:
        """Return *text* with every known placeholder replaced."""
        return _PLACEHOLDER.sub(self._substitute, text)

    def resolve_mapping(self, values: Mapping[str, str]) -> dict[str, str]:
        """Resolve every value of *values*; keys are kept as written."""
        return {key: self.resolve(value) for key, value in values.items()}

    def _substitute(self, match: re.Match[str]) -> str:
        name = match.group(1)
        if name in self._variables or name in self._functions:
            return self.generate(name)
        return match.group(0)

    def _random_string(self, length: int = 10) -> str:
        return "".join(self._rng.choice(_ALPHANUMERIC) for _ in range(length))

    def _random_email(self) -> str:
        return f"{self._random_string().lower()}@{self._rng.choice(_MAIL_DOMAINS)}"

    def _random_phone(self) -> str:
        rng = self._rng
        return f"+1{rng.randint(100, 999)}{rng.randint(100, 999)}{rng.randrange(10_000):04d}"

    def _username(self) -> str:
        first = self.generate("first_name").lower()
        last = self.generate("last_name").lower()
        return f"{first}.{last}{self._rng.randrange(10_000)}"


def _now() -> datetime:
    return datetime.now(timezone.utc)
