"""
Structured logging for the license process API.

Every record is emitted as one JSON line. Correlation fields bound for the
current request (request id, caller id, process id) are copied onto each
record, together with anything passed through `extra=`.
"""

import json
import logging
import sys
import uuid
from typing import Optional, Dict, Any
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
process_id_var: ContextVar[Optional[str]] = ContextVar("process_id", default=None)

CORRELATION_VARS = (request_id_var, user_id_var, process_id_var)

# Attributes every LogRecord has; the rest came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

QUIET_LOGGERS = ("uvicorn", "fastapi", "httpx", "httpcore", "hpack")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update({var.name: var.get() for var in CORRELATION_VARS if var.get()})
        entry.update({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and k not in entry})

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str, ensure_ascii=False)


class RequestContextLogger:
    """Binds correlation fields for the duration of a `with` block.

    A missing request id is generated; user and process ids are bound only
    when given.
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        user_id: Optional[str] = None,
        process_id: Optional[str] = None
    ):
        self.request_id = request_id or str(uuid.uuid4())
        self.bindings = [
            (var, value)
            for var, value in zip(CORRELATION_VARS, (self.request_id, user_id, process_id))
            if value
        ]
        self._tokens = []

    def __enter__(self):
        self._tokens = [var.set(value) for var, value in self.bindings]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            token = self._tokens.pop()
            token.var.reset(token)


def setup_logging(level: str = "INFO", format_type: str = "structured") -> None:
    """Install a single stdout handler on the root logger.

    `format_type` is "structured" for JSON lines; any other value gives the
    plain `asctime - name - level - message` layout used when developing.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_performance(operation: str, duration_ms: float, success: bool = True, **kwargs) -> None:
    get_logger("performance").info(
        f"{operation} took {duration_ms:.1f}ms",
        extra={"operation": operation, "duration_ms": round(duration_ms, 2), "success": success, **kwargs}
    )


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Access decisions: denied credentials, failed logins, missing tokens."""
    get_logger("security").warning(
        f"Security event: {event_type}",
        extra={"event_type": event_type, "actor_id": user_id, "ip_address": ip_address, "details": details or {}}
    )


def log_business_event(
    event_type: str,
    entity_type: str,
    entity_id: str,
    action: str,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """State changes on processes, companies, documents and procurations."""
    get_logger("business").info(
        f"{entity_type} {entity_id} {action}",
        extra={
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "actor_id": user_id,
            "details": details or {},
        }
    )


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an unhandled exception with its traceback and any application context it carries."""
    extra = {"error_type": type(error).__name__, **(context or {})}
    for attr in ("error_code", "context"):
        if hasattr(error, attr):
            extra[f"exception_{attr}"] = getattr(error, attr)
    get_logger("error").error(f"Unhandled {type(error).__name__}: {error}", extra=extra, exc_info=error)
