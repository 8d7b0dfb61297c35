"""structlog setup: one key=value line per event on stdout."""
from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, TextIO

import structlog

_CONTROL_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"})

KEY_ORDER = ["timestamp", "level", "logger", "event", "trace_id", "request_id"]

# Library loggers routed through the root handler
_PASSTHROUGH_LOGGERS = ("aiohttp.access", "aiohttp.server", "aiohttp.client")


def _escape(value: Any) -> Any:
    return value.translate(_CONTROL_ESCAPES) if isinstance(value, str) else value


def escape_control_chars(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Keep multi-line values (tracebacks, response bodies) on a single line.

    Runs after ``format_exc_info``. Containers are escaped one level deep.
    """
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _escape(v) for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            event_dict[key] = [_escape(v) for v in value]
        else:
            event_dict[key] = _escape(value)
    return event_dict


# Shared by structlog events and plain stdlib records (aiohttp access log etc.)
_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def build_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Render every record once: escape control characters, then key=value."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            escape_control_chars,
            structlog.processors.KeyValueRenderer(key_order=KEY_ORDER, drop_missing=True),
        ],
    )


def configure_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(build_formatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _PASSTHROUGH_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers = []
        library_logger.propagate = True

    structlog.configure(
        processors=[
            *_PRE_CHAIN,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
