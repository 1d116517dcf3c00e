"""
Custom Exceptions
Exception hierarchy shared by the session, video and backend layers.
"""
from typing import Optional


class StudioError(Exception):
    """Base exception for the creative studio."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(StudioError):
    """Missing or invalid configuration."""
    pass


class BackendError(StudioError):
    """An external collaborator call failed (transport, non-2xx, success=false)."""

    def __init__(self, message: str, endpoint: str = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, kwargs)
        self.endpoint = endpoint
        self.status_code = status_code


class MalformedResponseError(BackendError):
    """Backend answered but the payload did not match the expected shape."""
    pass


class InvalidTransitionError(StudioError):
    """Action is not valid for the session's current phase or sub-state."""

    def __init__(self, message: str, phase: str = None, action: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.phase = phase
        self.action = action


class CostGateError(InvalidTransitionError):
    """A chargeable render was requested while a confirmation is still pending."""
    pass
