"""Spark HTTP server: Starlette app, settings, and REST endpoints."""

from .app import build_engine, create_app, run
from .config import ServerSettings, get_settings

__all__ = ["ServerSettings", "build_engine", "create_app", "get_settings", "run"]
