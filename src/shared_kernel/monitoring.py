"""
Логирование для всех контекстов.

Компоненты зависят от протокола ILogger, а по умолчанию получают StdLogger,
который пишет в стандартный модуль logging.
"""

import json
import logging
import logging.config
from typing import Any, Optional, Protocol

from .config import settings


class ILogger(Protocol):
    """Интерфейс для логгера."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...


class StdLogger:
    """Реализация ILogger поверх logging, контекст дописывается в виде JSON."""

    def __init__(self, name: str = "travel") -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, message: str, context: dict) -> None:
        if context:
            message = f"{message} | {json.dumps(context, default=str, ensure_ascii=False)}"
        self._logger.log(level, message)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)


def configure_logging(level: Optional[str] = None) -> None:
    """Настраивает обработчики для логгеров пакетов."""
    level = level or settings.log_level
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "detailed": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - "
                    "[%(filename)s:%(lineno)d] - %(message)s"
                },
            },
            "handlers": {
                "default": {
                    "formatter": "detailed",
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                "travel": {"handlers": ["default"], "level": level},
            },
        }
    )
