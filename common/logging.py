from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone

REQUEST_FIELDS = (
    "request_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "remote_addr",
)

STOCK_FIELDS = (
    "entity",
    "entity_id",
    "location_id",
    "total_items",
    "shortages",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with request and stock context when attached."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in REQUEST_FIELDS + STOCK_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _level_for(status_code):
    if status_code >= 500:
        return logging.ERROR
    if status_code in (400, 404, 409):
        return logging.WARNING
    return logging.INFO


class RequestLogMiddleware:
    """Tag each request with an ``X-Request-ID`` and log one line per response.

    Client errors (400, 404, 409) log at WARNING and server errors at ERROR.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.logger = logging.getLogger("api.request")

    def __call__(self, request):
        started_at = time.perf_counter()
        request.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        response = self.get_response(request)

        self.logger.log(
            _level_for(response.status_code),
            "%s %s -> %s",
            request.method,
            request.path,
            response.status_code,
            extra={
                "request_id": request.request_id,
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started_at) * 1000, 2),
                "remote_addr": request.META.get("REMOTE_ADDR"),
            },
        )
        response["X-Request-ID"] = request.request_id
        return response
