# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Shared helpers for REST endpoint parameter parsing and body handling."""

from __future__ import annotations

from typing import Any

from starlette.requests import Request

from ..consensus.engine import KnowledgeEngine
from ..core.exceptions import ConfigException


def _parse_int(value: str | None, default: int, maximum: int = 1000) -> int:
    """Parse an integer query parameter with a max cap."""
    if value is None:
        return default
    try:
        return max(1, min(int(value), maximum))
    except ValueError:
        return default


def _require_str(body: dict[str, Any], key: str) -> str | None:
    """Return a non-empty string field from a JSON body, or None."""
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def get_engine(request: Request) -> KnowledgeEngine:
    """Engine attached to the application at startup.

    Raises:
        ConfigException: If the application was created without one and the
            topology could not be loaded.
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ConfigException("Knowledge engine not initialized; check SPARK_TOPOLOGY_FILE")
    return engine
