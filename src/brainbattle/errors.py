"""Domain error taxonomy.

Each error carries the HTTP status it maps to; the global handler in
``brainbattle.middleware.error_handler`` renders them as ``{"error": ...}``.
"""

from __future__ import annotations

from typing import Any


class BrainBattleError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None, **extra: Any) -> None:  # noqa: ANN401
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class AuthError(BrainBattleError):
    """Missing or invalid bearer credential."""

    status_code = 401


class RequestValidationFailed(BrainBattleError):
    """Malformed request body or schema violation (field-level details in ``details``)."""

    status_code = 400


class ForbiddenError(BrainBattleError):
    """Authenticated, but not allowed to act on this resource."""

    status_code = 403


class NotFoundError(BrainBattleError):
    status_code = 404


class StateTransitionError(BrainBattleError):
    """Illegal session or game state transition."""

    status_code = 409


class UpstreamQuotaError(BrainBattleError):
    """LLM gateway answered 429 (rate limited) or 402 (credits exhausted)."""

    status_code = 429


class UpstreamError(BrainBattleError):
    """Any other LLM gateway failure."""

    status_code = 500


class StorageError(BrainBattleError):
    """A CRUD operation against the relational store failed."""

    status_code = 500
