"""External collaborator boundary for the studio API."""

from .base import BaseStudioBackend
from .http_client import HttpStudioBackend

__all__ = ["BaseStudioBackend", "HttpStudioBackend"]
