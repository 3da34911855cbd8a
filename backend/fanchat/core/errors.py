"""Typed failures raised by the fan chat services.

Every error carries the HTTP status the API layer answers with, so route
handlers never translate them by hand.
"""

from __future__ import annotations

from fastapi import status


class FanChatError(Exception):
    """Base class for domain failures surfaced to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(FanChatError):
    """Malformed input such as empty content or a missing reason."""

    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(FanChatError):
    """Membership, role or restriction check failed."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(FanChatError):
    """Referenced chat, message, report or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(FanChatError):
    """Concurrent or duplicate write collided with existing state."""

    status_code = status.HTTP_409_CONFLICT


class RateLimitedError(FanChatError):
    """Sender exceeded the per-chat message rate."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
