# servicedesk/core/logging.py
import json
import logging
import logging.config
import time
import uuid
from typing import Any, Mapping
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# стандартні атрибути LogRecord; решта: це наш extra=
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}


class KeyValueFormatter(logging.Formatter):
    """plain-рядок + extra як key=value: `... ticket_created ticket_id=5 requester_id=3`"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = _extra_fields(record)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
        return line


class JsonFormatter(logging.Formatter):
    """Один JSON-об'єкт на рядок (для prod-збирача логів)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            **_extra_fields(record),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Єдина конфігурація логів для апки, воркера й bootstrap-скрипта."""
    formatter = "json" if json_output else "kv"
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "kv": {"()": KeyValueFormatter, "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s"},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "default": {"class": "logging.StreamHandler", "formatter": formatter},
        },
        "loggers": {
            "": {"handlers": ["default"], "level": level},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": level, "propagate": False},
            # власний access-лог пише RequestIdMiddleware
            "uvicorn.access": {"handlers": [], "level": "WARNING", "propagate": False},
        },
    })


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    X-Request-ID для трейсингу: береться з вхідного заголовка або генерується,
    кладеться в request.state і у відповідь. Кожен запит логується одним рядком
    `request_done` із методом, шляхом, статусом і тривалістю.
    """

    header_name = "X-Request-ID"
    logger = logging.getLogger("servicedesk.access")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)
        response.headers[self.header_name] = request_id
        self.logger.info("request_done", extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        })
        return response


def log_extra(request: Request) -> Mapping[str, Any]:
    """logger.info("signed_in", extra={**log_extra(request), "user_id": user.id})"""
    rid = getattr(request.state, "request_id", None)
    return {"request_id": rid} if rid else {}
