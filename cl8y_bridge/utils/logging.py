"""
Structured logging for the bridge.

Events are snake_case names with keyword fields. Raw bytes fields (transfer
hashes, chain ids, 32-byte accounts) are rendered as 0x-hex so that log lines
can be matched against explorer output and the hash calculator.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger


def render_bytes_as_hex(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Replace bytes values with their 0x-prefixed hex form."""
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray)):
            event_dict[key] = "0x" + bytes(value).hex()
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool | None = None) -> None:
    """
    Configure structlog for the bridge services and API.

    Args:
        log_level: Standard logging level name
        json_logs: Force JSON (True) or console (False) output; by default
            JSON is used unless stderr is a terminal
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        render_bytes_as_hex,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_logs is None:
        json_logs = not sys.stderr.isatty()

    if json_logs:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(module=name)
    return logger


class LoggerMixin:
    """Gives bridge components a `log` bound to their class name."""

    @property
    def log(self) -> structlog.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """Bind fields such as chain and role to every log line in scope."""
    return structlog.contextvars.bound_contextvars(**kwargs)
