"""
Configuration Management Module
Central settings for backend access, polling, video defaults and logging.
"""
from .settings import (
    Settings,
    BackendSettings,
    PollingSettings,
    VideoSettings,
    SessionSettings,
    LoggingSettings,
    get_settings,
    get_backend_settings,
)

__all__ = [
    "Settings",
    "BackendSettings",
    "PollingSettings",
    "VideoSettings",
    "SessionSettings",
    "LoggingSettings",
    "get_settings",
    "get_backend_settings",
]
