"""Process-wide logging bootstrap."""
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .settings import AllocationSettings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def _file_handler(log_file: Path, formatter: logging.Formatter) -> logging.Handler | None:
    try:
        log_file.expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        logging.getLogger(__name__).warning("cannot create log directory %s: %s", log_file.parent, error)
        return None
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: int | str = logging.INFO, log_file: str | Path | None = None) -> None:
    """Replace root handlers with a console handler plus an optional rotating file."""

    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = _file_handler(Path(log_file), formatter)
        if file_handler is not None:
            root_logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger(__name__).debug("logging configured level=%s file=%s", level, log_file)


def configure_from_settings(settings: "AllocationSettings") -> None:
    setup_logging(settings.log_level.upper(), settings.log_file)


__all__ = ["configure_from_settings", "setup_logging"]
