import logging
import os
import sys
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def setup_logging() -> None:
    """Configure root logging and align the uvicorn loggers with LOG_LEVEL.

    Handlers are only added when nothing configured the root logger before
    (uvicorn and pytest both install their own).
    """
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Logs each request with latency and status, tagged with a request id.

    The id is taken from an incoming X-Request-ID header when present and is
    echoed back in the response headers.
    """

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger("formbuilder.http")

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        start = time.time()
        method = request.method
        path = request.url.path
        client = request.client.host if request.client else ""

        self.logger.info("request start %s %s client=%s rid=%s", method, path, client, request_id)
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = int((time.time() - start) * 1000)
            self.logger.exception("request error %s %s time_ms=%s rid=%s", method, path, elapsed_ms, request_id)
            raise

        elapsed_ms = int((time.time() - start) * 1000)
        response.headers["x-request-id"] = request_id
        self.logger.info(
            "request end %s %s status=%s time_ms=%s rid=%s",
            method,
            path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        return response
