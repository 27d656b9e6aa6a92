"""Structured logging for AIO Pulse services.

Emits one JSON object per log line, with optional monitoring-run context
(brand, prompt, engine) attached so that a failing engine can be traced
back to the run that produced it.
"""

import json
import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


_loggers: dict[str, "StructuredLogger"] = {}

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SERVICE_NAME = "aio-pulse"


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON documents."""

    # LogRecord attributes that are never copied into the payload
    RESERVED_FIELDS = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "asctime", "taskName",
    }

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if record.levelno >= logging.WARNING:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = "".join(
                traceback.format_exception(*record.exc_info)
            )

        for key, value in record.__dict__.items():
            if key in self.RESERVED_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)

        return json.dumps(entry)


@dataclass
class RequestContext:
    """Fields identifying one monitoring run or API request."""

    request_id: Optional[str] = None
    client_ip: Optional[str] = None
    brand_id: Optional[str] = None
    prompt_id: Optional[str] = None
    engine: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return only the fields that are set."""
        result = {
            key: value
            for key, value in (
                ("request_id", self.request_id),
                ("client_ip", self.client_ip),
                ("brand_id", self.brand_id),
                ("prompt_id", self.prompt_id),
                ("engine", self.engine),
            )
            if value
        }
        result.update(self.extra)
        return result


class StructuredLogger:
    """Thin wrapper over ``logging.Logger`` that accepts keyword fields.

    Fields passed to :meth:`bind` are attached to every subsequent record.
    """

    def __init__(self, name: str, bound: Optional[dict[str, Any]] = None):
        self.name = name
        self._logger = logging.getLogger(name)
        self._bound: dict[str, Any] = dict(bound or {})

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Return a child logger with extra fields bound."""
        merged = {**self._bound, **{k: v for k, v in fields.items() if v is not None}}
        return StructuredLogger(self.name, merged)

    def _log(
        self,
        level: int,
        msg: str,
        context: Optional[RequestContext] = None,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = dict(self._bound)
        if context:
            extra.update(context.to_dict())
        extra.update(kwargs)
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, context: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, context, **kwargs)

    def info(self, msg: str, context: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, context, **kwargs)

    def warning(self, msg: str, context: Optional[RequestContext] = None, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, context, **kwargs)

    def error(
        self,
        msg: str,
        context: Optional[RequestContext] = None,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        self._log(logging.ERROR, msg, context, exc_info=exc_info, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger.

    Args:
        name: Logger name (typically module name)

    Returns:
        StructuredLogger instance
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    json_format: bool = True,
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of plain text
        service_name: Value of the ``service`` field in JSON output
    """
    numeric_level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if json_format:
        handler.setFormatter(JsonFormatter(service_name=service_name))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    root_logger.addHandler(handler)

    # httpx logs every request at INFO, including provider URLs
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
