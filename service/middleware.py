from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class ServiceTimingMiddleware(BaseHTTPMiddleware):
    """Stamp each response with wall time spent inside the app."""

    def __init__(self, app, metric_name: str = "estimate") -> None:
        super().__init__(app)
        self.metric_name = metric_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        t0 = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - t0) * 1000.0

        response.headers["X-Service-MS"] = f"{ms:.3f}"

        # append to Server-Timing if an inner layer already set one
        existing = response.headers.get("Server-Timing")
        metric = f"{self.metric_name};dur={ms:.3f}"
        response.headers["Server-Timing"] = f"{existing}, {metric}" if existing else metric
        return response
