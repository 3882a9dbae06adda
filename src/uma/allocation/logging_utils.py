"""JSON event logging for allocation decisions."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Protocol


class LoggerLike(Protocol):
    """Event logger accepted by the orchestrator."""

    def info(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None: ...

    def warning(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None: ...

    def bind(self, **context: Any) -> "LoggerLike": ...


class StructuredLogger:
    """Renders each event as one JSON object: ``{"event": ..., **context, **extra}``."""

    def __init__(self, logger: logging.Logger, context: Mapping[str, Any] | None = None) -> None:
        self._logger = logger
        self._context: Dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> "StructuredLogger":
        return StructuredLogger(self._logger, {**self._context, **context})

    def render(self, event: str, extra: Mapping[str, Any] | None = None) -> str:
        payload: Dict[str, Any] = {"event": event, **self._context}
        if extra:
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _emit(self, level: int, event: str, extra: Mapping[str, Any] | None) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self.render(event, extra))

    def debug(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None:
        self._emit(logging.DEBUG, event, extra)

    def info(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None:
        self._emit(logging.INFO, event, extra)

    def warning(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None:
        self._emit(logging.WARNING, event, extra)

    def error(self, event: str, *, extra: Mapping[str, Any] | None = None) -> None:
        self._emit(logging.ERROR, event, extra)


def build_logger(name: str = "uma.allocation") -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name))


__all__ = ["LoggerLike", "StructuredLogger", "build_logger"]
