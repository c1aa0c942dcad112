"""
Per-request id and duration.

Every response carries ``X-Request-ID`` (echoed from the caller when given)
and ``X-Request-Duration-Ms``. API requests are logged at DEBUG, or WARNING
once they cross ``SLOW_REQUEST_MS``; 5xx responses are logged at ERROR.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/api/v1/health",)


def init_request_timing(app: Flask):

    @app.before_request
    def _begin():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if not request.path.startswith("/api/") or request.path.startswith(_QUIET_PREFIXES):
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
        }
        slow_ms = app.config.get("SLOW_REQUEST_MS", 1000)
        if response.status_code >= 500:
            level = logging.ERROR
        elif duration_ms > slow_ms:
            level = logging.WARNING
        else:
            level = logging.DEBUG
        logger.log(level, "%s %s -> %d", request.method, request.path, response.status_code, extra=extra)
        return response
