"""Middleware registration."""

from fastapi import FastAPI

from brainbattle.config import Settings
from brainbattle.middleware.cors import setup_cors
from brainbattle.middleware.error_handler import setup_error_handlers
from brainbattle.middleware.logging import setup_logging
from brainbattle.middleware.rate_limit import RateLimitMiddleware
from brainbattle.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Logging and error rendering, then the HTTP stack.

    Outermost first on the wire: CORS, request id, rate limit. A throttled
    request still gets CORS headers and an ``X-Request-Id``.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
