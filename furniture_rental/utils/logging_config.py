"""
Structured Logging Configuration

Every record is stamped with the request and caller ids of the HTTP request
that produced it. Reservation outcomes go through RentalLogger so the JSON
output carries a stable ``event`` name plus the event's fields.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .sanitization import sanitize_for_log

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
caller_id_var: ContextVar[str] = ContextVar('caller_id', default='')

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'


class RequestContextFilter(logging.Filter):
    """Copies the current request context onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.caller_id = caller_id_var.get() or None
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if getattr(record, "caller_id", None):
            payload["caller_id"] = record.caller_id

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event
            payload["fields"] = getattr(record, "fields", {})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class RentalLogger(logging.LoggerAdapter):
    """Named events for the reservation lifecycle and HTTP traffic."""

    def event(self, level: int, event: str, msg: str, **fields) -> None:
        self.logger.log(level, msg, extra={"event": event, "fields": fields})

    def reservation_created(
        self,
        reservation_id: str,
        client_id: str,
        total_amount: int,
        status: str,
        duration_ms: Optional[float] = None
    ):
        self.event(
            logging.INFO, "reservation_created",
            f"Reservation {reservation_id} created for client {client_id}",
            reservation_id=reservation_id,
            client_id=client_id,
            total_amount=total_amount,
            status=status,
            duration_ms=duration_ms,
        )

    def reservation_status_changed(self, reservation_id: str, old_status: str, new_status: str):
        self.event(
            logging.INFO, "reservation_status_changed",
            f"Reservation {reservation_id}: {old_status} -> {new_status}",
            reservation_id=reservation_id,
            old_status=old_status,
            new_status=new_status,
        )

    def reservation_rejected(self, reason: str, detail: str, **context):
        """A reservation request refused before anything was written."""
        self.event(
            logging.WARNING, "reservation_rejected",
            f"Reservation rejected ({reason}): {sanitize_for_log(detail)}",
            reason=reason,
            **context
        )

    def transaction_conflict(self, attempts: int):
        self.event(
            logging.ERROR, "transaction_conflict",
            f"Reservation transaction gave up after {attempts} conflicting attempts",
            attempts=attempts,
        )

    def api_request(self, method: str, path: str, status_code: int, duration_ms: float):
        self.event(
            logging.INFO, "api_request",
            f"{method} {path} - {status_code}",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
        )


def setup_logging(level: str = "INFO", json_format: bool = True) -> logging.Handler:
    """
    Route the root and uvicorn loggers to stdout.

    Returns the installed handler.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(logger_name).handlers = [handler]

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return handler


def get_logger(name: str) -> RentalLogger:
    return RentalLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, caller_id: Optional[str] = None):
    request_id_var.set(request_id)
    caller_id_var.set(caller_id or '')


def clear_request_context():
    request_id_var.set('')
    caller_id_var.set('')
