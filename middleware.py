#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI Middleware for Tubecollate.

Logs every request, rejects oversized bodies, and collects request metrics
that the /health endpoint reports.
"""

import time
from collections import defaultdict, deque
from typing import Any, Dict

from fastapi import FastAPI, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from config import config
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)


class RequestMetrics:
    """Request counters shared between the middleware and the health endpoint.

    Only touched from the event loop thread, so no lock is taken.
    """

    # Limit the size of response times deque to prevent unbounded memory growth
    MAX_RESPONSE_TIMES = 1000

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.total_requests = 0
        self.status_codes: Dict[int, int] = defaultdict(int)
        self.paths: Dict[str, int] = defaultdict(int)
        self.response_times_ms: deque = deque(maxlen=self.MAX_RESPONSE_TIMES)
        self.start_time = time.monotonic()

    def record(self, path: str, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.status_codes[status_code] += 1
        self.paths[path] += 1
        self.response_times_ms.append(duration_ms)

    def get_stats(self) -> Dict[str, Any]:
        """Get collected metrics statistics."""
        uptime = time.monotonic() - self.start_time
        response_times = sorted(self.response_times_ms)

        metrics: Dict[str, Any] = {
            "uptime_seconds": round(uptime, 1),
            "total_requests": self.total_requests,
            "success_requests": sum(n for code, n in self.status_codes.items() if code < 400),
            "client_error_requests": sum(n for code, n in self.status_codes.items() if 400 <= code < 500),
            "server_error_requests": sum(n for code, n in self.status_codes.items() if code >= 500),
            "status_codes": dict(self.status_codes),
            "top_paths": dict(sorted(self.paths.items(), key=lambda item: item[1], reverse=True)[:10]),
        }

        if response_times:
            count = len(response_times)
            metrics["response_time_stats_ms"] = {
                "count": count,
                "average": round(sum(response_times) / count, 2),
                "min": round(response_times[0], 2),
                "max": round(response_times[-1], 2),
                "p95": round(response_times[int(count * 0.95)], 2) if count > 20 else None,
            }
        else:
            metrics["response_time_stats_ms"] = {"count": 0}

        return metrics


# Module-level instance read by the /health endpoint
request_metrics = RequestMetrics()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its status and duration and records it in `request_metrics`.

    Requests whose declared body exceeds MAX_CONTENT_LENGTH are answered
    with 413 without reaching the routes.
    """

    def __init__(self, app: FastAPI, max_content_length: int = config.MAX_CONTENT_LENGTH,
                 slow_request_threshold_ms: float = config.SLOW_REQUEST_THRESHOLD_MS,
                 metrics: RequestMetrics = request_metrics):
        super().__init__(app)
        self.max_content_length = max_content_length
        self.slow_request_threshold_ms = slow_request_threshold_ms
        self.metrics = metrics
        logger.info(
            f"RequestLoggingMiddleware initialized. Max content length: {max_content_length / (1024*1024):.2f} MB",
            max_content_length=max_content_length,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else "unknown"

        content_length_header = request.headers.get("content-length")
        if content_length_header:
            try:
                content_length = int(content_length_header)
            except ValueError:
                logger.warning(f"Invalid Content-Length header: {content_length_header}", path=path)
                content_length = 0
            if content_length > self.max_content_length:
                logger.warning(
                    f"Request body too large: {content_length} bytes > {self.max_content_length} bytes limit.",
                    client_ip=client_ip, path=path, method=method,
                )
                self.metrics.record(path, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, 0.0)
                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={"detail": "Request body is too large.", "error_code": "CONTENT_TOO_LARGE"},
                )

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Content-Type-Options"] = "nosniff"
            return response
        except Exception as exc:
            logger.error(
                "Exception during request processing",
                path=path, method=method, client_ip=client_ip, error=str(exc),
            )
            raise
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.metrics.record(path, status_code, duration_ms)

            log_fields = {
                "path": path,
                "method": method,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            }
            if status_code >= 500:
                logger.error(f"{method} {path} -> {status_code}", exc_info=False, **log_fields)
            elif status_code >= 400:
                logger.warning(f"{method} {path} -> {status_code}", **log_fields)
            else:
                logger.info(f"{method} {path} -> {status_code}", **log_fields)

            if duration_ms > self.slow_request_threshold_ms:
                logger.warning(f"Slow response: {method} {path}", **log_fields)
