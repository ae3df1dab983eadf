"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from brainbattle.config import Settings

# Headers the browser client sends alongside its bearer token
ALLOWED_HEADERS = [
    "authorization",
    "content-type",
    "x-client-info",
    "apikey",
    "x-request-id",
]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the web client origins to call the API and the generation endpoints."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
