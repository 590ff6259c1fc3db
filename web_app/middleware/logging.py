"""Logging middleware."""

import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Callable, Optional

from shortener.common.logging_config import get_logger
from shortener.rate_limit import classify_subnet


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging keyed by client address and subnet.

    Runs inside ForwardedHeadersMiddleware, so the resolved client address
    is already on request.state.
    """

    def __init__(self, app, logger: Optional[logging.Logger] = None):
        super().__init__(app)
        self.logger = logger or get_logger("web")

    async def dispatch(self, request: Request, call_next: Callable):
        started = time.perf_counter()

        client_ip = getattr(request.state, "client_ip", None)
        if client_ip is None:
            client_ip = request.client.host if request.client else "unknown"
        subnet = classify_subnet(client_ip)
        self.logger.debug(f"Request: {request.method} {request.url.path} from {client_ip} ({subnet})")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        self.logger.log(
            level,
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.2f}ms client={client_ip} subnet={subnet}",
        )

        return response
