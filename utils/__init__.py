"""
Utils Module
Shared logging and exception helpers.
"""
from .logger import configure_logging, setup_logger, get_logger
from .exceptions import (
    StudioError,
    BackendError,
    MalformedResponseError,
    InvalidTransitionError,
    CostGateError,
    ConfigurationError,
)

__all__ = [
    "configure_logging",
    "setup_logger",
    "get_logger",
    "StudioError",
    "BackendError",
    "MalformedResponseError",
    "InvalidTransitionError",
    "CostGateError",
    "ConfigurationError",
]
