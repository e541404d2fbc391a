"""Logging configuration for Transfer Match."""
import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

from transfer_match.exceptions import ConfigurationError

if TYPE_CHECKING:
    from config.settings import Settings

# Chatty at INFO/DEBUG: HTTP client for external scorers, ORM engine
QUIET_LOGGERS = ("aiohttp", "sqlalchemy", "urllib3")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _parse_level(level: str) -> int:
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ConfigurationError(f"Unknown log level: {level!r}")
    return value


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
) -> None:
    """Configure application-wide logging.

    Call once at application startup (scripts, service hosts). Later calls
    leave existing handlers in place.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path for rotating file handler

    Raises:
        ConfigurationError: On an unknown level name
    """
    root_level = _parse_level(level)
    root = logging.getLogger()

    # Avoid duplicate handlers on repeated calls
    if root.handlers:
        return

    root.setLevel(root_level)
    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_level))


def setup_logging_from_settings(settings: "Settings") -> None:
    """Configure logging from ``log_level`` and ``log_file`` settings."""
    setup_logging(settings.log_level, settings.log_file)
