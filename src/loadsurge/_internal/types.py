"""Shared type aliases for LoadSurge."""

from __future__ import annotations

from typing import Any

# HTTP headers dictionary.
Headers = dict[str, str]

# JSON-compatible payload carried inside a wire envelope.
JsonDict = dict[str, Any]
