import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from .settings import settings

# 13-19 цифр подряд (допускаются пробелы и дефисы) считаем номером карты
_PAN_RE = re.compile(r"(?<!\d)(\d{6})[\d -]{3,9}(\d{4})(?!\d)")


def mask_card_numbers(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """В строковых полях события оставляет BIN и последние 4 цифры."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _PAN_RE.sub(r"\1******\2", value)
    return event_dict


def add_library_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("mode", settings.GATEWAY_MODE)
    return event_dict


def configure_structlog(json_logs: bool = False) -> None:
    """
    Вызывается приложением, которое использует библиотеку. Без вызова
    structlog работает с настройками по умолчанию.
    """
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_library_context,
        mask_card_numbers,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if json_logs or settings.LOG_JSON:
        renderer: list[Processor] = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=shared + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )
    # httpx пишет каждую строку запроса на INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
