"""Structured logging for compsync.

structlog renders every record, including those from stdlib loggers such as
httpx, through one ``ProcessorFormatter`` installed with ``dictConfig``. Logs
go to stderr by default; stdout carries the import report.

Environment variables:
    COMPSYNC_LOG_LEVEL   engine log level (default: WARNING)
    COMPSYNC_LOG_FORMAT  console | json (default: console)
"""

from __future__ import annotations

import logging
import logging.config
import os
import sys
from typing import IO, Any

import structlog

from compsync.exceptions import ConfigurationError

LOG_FORMATS = ("console", "json")

# Third-party loggers that stay at WARNING whatever the engine level is.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")

_PRE_CHAIN: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def setup_logging(
    level: str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Explicit arguments (``--verbose`` passes ``level="DEBUG"``) win over the
    environment. Raises ``ConfigurationError`` for an unknown level or format.
    """
    log_level = _resolve_level(level or os.environ.get("COMPSYNC_LOG_LEVEL", "WARNING"))
    log_format = (fmt or os.environ.get("COMPSYNC_LOG_FORMAT", "console")).lower()
    if log_format not in LOG_FORMATS:
        raise ConfigurationError(
            f"COMPSYNC_LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}, got {log_format!r}"
        )
    out = stream if stream is not None else sys.stderr

    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.config.dictConfig(_logging_config(log_level, _renderer(log_format, out), out))


def _resolve_level(name: str) -> str:
    level = name.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"unknown log level {name!r}")
    return level


def _renderer(log_format: str, stream: IO[str]) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def _logging_config(
    level: str, renderer: structlog.types.Processor, stream: IO[str]
) -> dict[str, Any]:
    loggers: dict[str, dict[str, Any]] = {"compsync": {"level": level}}
    loggers.update({name: {"level": "WARNING"} for name in _QUIET_LOGGERS})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "compsync": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": _PRE_CHAIN,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
            },
        },
        "handlers": {
            "compsync": {
                "class": "logging.StreamHandler",
                "stream": stream,
                "formatter": "compsync",
            },
        },
        "root": {"handlers": ["compsync"], "level": level},
        "loggers": loggers,
    }
