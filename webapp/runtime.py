"""Shared runtime singletons for the web and CLI entrypoints."""

from __future__ import annotations

from typing import Optional

from backend import BaseStudioBackend, HttpStudioBackend
from config import get_backend_settings
from session import InMemorySessionStore


_STORE = InMemorySessionStore()
_BACKEND: Optional[BaseStudioBackend] = None


def get_store() -> InMemorySessionStore:
    return _STORE


def get_backend() -> BaseStudioBackend:
    global _BACKEND
    if _BACKEND is None:
        _BACKEND = HttpStudioBackend(settings=get_backend_settings())
    return _BACKEND


def set_backend(backend: Optional[BaseStudioBackend]) -> None:
    """Swap the collaborator used for new sessions (None restores the HTTP default)."""
    global _BACKEND
    _BACKEND = backend
