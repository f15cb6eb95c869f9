import json
import logging
import os
import time
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from prometheus_fastapi_instrumentator import Instrumentator

CORRELATION_HEADER = "X-Correlation-Id"
REQUEST_HEADER = "X-Request-Id"
TRACE_HEADER = "X-Trace-Id"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")

_ACCESS_LOGGER = logging.getLogger("travelsync.access")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra_fields`` passed through ``extra`` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", "travelsync"),
            "environment": os.getenv("ENVIRONMENT", "local"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(current_request_ids())
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps({k: v for k, v in payload.items() if v is not None}, default=str)


def current_request_ids() -> dict[str, Optional[str]]:
    return {
        "correlation_id": correlation_id_var.get() or None,
        "request_id": request_id_var.get() or None,
        "trace_id": trace_id_var.get() or None,
    }


def configure_logging() -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    stream = logging.StreamHandler()
    stream.setFormatter(JsonFormatter())
    root_logger.addHandler(stream)


def setup_observability(app: FastAPI) -> None:
    configure_logging()
    Instrumentator(excluded_handlers=["/metrics"]).instrument(app).expose(app)
    app.middleware("http")(_observe_request)


async def _observe_request(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    correlation_id = request.headers.get(CORRELATION_HEADER) or f"corr_{uuid4().hex[:12]}"
    request_id = request.headers.get(REQUEST_HEADER) or f"req_{uuid4().hex[:12]}"
    trace_id = _trace_id_from_traceparent(request.headers.get("traceparent")) or uuid4().hex

    bound = [
        (correlation_id_var, correlation_id_var.set(correlation_id)),
        (request_id_var, request_id_var.set(request_id)),
        (trace_id_var, trace_id_var.set(trace_id)),
    ]
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        path_params = request.scope.get("path_params") or {}
        _ACCESS_LOGGER.info(
            "request.completed",
            extra={
                "extra_fields": {
                    "http_method": request.method,
                    "endpoint": request.url.path,
                    "proposal_id": path_params.get("proposal_id"),
                    "status_code": status_code,
                    "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                }
            },
        )
        for var, token in reversed(bound):
            var.reset(token)

    response.headers[CORRELATION_HEADER] = correlation_id
    response.headers[REQUEST_HEADER] = request_id
    response.headers[TRACE_HEADER] = trace_id
    response.headers["traceparent"] = f"00-{trace_id}-0000000000000001-01"
    return response


def _trace_id_from_traceparent(traceparent: Optional[str]) -> Optional[str]:
    parts = (traceparent or "").split("-")
    if len(parts) >= 4 and len(parts[1]) == 32:
        return parts[1]
    return None
