from __future__ import annotations

import logging
import time
import uuid

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging_config import request_id_var


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with X-Request-ID and logs method, path, status and timing."""

    def __init__(self, app) -> None:
        super().__init__(app)
        self._logger = logging.getLogger("app.request")

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            self._logger.info(
                "%s %s -> %s in %.1fms", request.method, request.url.path, response.status_code, elapsed_ms
            )
            return response
        except Exception:
            self._logger.exception("Unhandled error during %s %s", request.method, request.url.path)
            raise
        finally:
            request_id_var.reset(token)


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None or not raw.isdigit():
        return None
    return int(raw)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose declared Content-Length exceeds ``max_bytes`` with a 413."""

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self.max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        length = _declared_length(request)
        if length is not None and length > self.max_bytes:
            logging.getLogger("app.request").warning(
                "Rejected %s %s: body of %d bytes", request.method, request.url.path, length
            )
            return JSONResponse(
                status_code=413,
                content={
                    "message": "Request body too large",
                    "details": {"content_length": length, "max_bytes": self.max_bytes},
                },
            )
        return await call_next(request)
