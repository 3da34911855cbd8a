"""Core utilities for the fan chat backend."""

from .clock import Clock, FrozenClock, SystemClock, system_clock
from .errors import (
    ConflictError,
    FanChatError,
    NotFoundError,
    PermissionDenied,
    RateLimitedError,
    ValidationError,
)

__all__ = [
    "Clock",
    "FrozenClock",
    "SystemClock",
    "system_clock",
    "FanChatError",
    "ValidationError",
    "PermissionDenied",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
]
