"""
Logger Configuration
Unified logging setup for the studio packages.
"""
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from rich.logging import RichHandler
from rich.console import Console


# Shared console instance
console = Console()

# Log formats
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

# Default log directory
LOG_DIR = Path(__file__).parent.parent / "logs"

# Top-level packages whose module loggers (logging.getLogger(__name__)) are configured together
PACKAGE_LOGGERS = ("session", "video", "backend", "webapp")


def setup_logger(
    name: str = "mia_studio",
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure a logger.

    Args:
        name: logger name
        level: log level
        log_file: optional file name, written under LOG_DIR
        use_rich: render console output through Rich

    Returns:
        The configured Logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Do not stack handlers on repeated setup
    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=True,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_path = LOG_DIR / log_file

        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    use_rich: bool = True,
    names: Iterable[str] = PACKAGE_LOGGERS,
) -> None:
    """Apply the same handler setup to every package logger."""
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    for name in names:
        setup_logger(name, level=numeric, log_file=log_file, use_rich=use_rich)


def get_logger(name: str = "mia_studio") -> logging.Logger:
    """
    Get a logger, configuring it with defaults on first use.

    Args:
        name: logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger
