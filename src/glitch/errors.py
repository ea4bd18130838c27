"""Domain exceptions raised by the quest engine.

Each carries the HTTP status the API layer maps it to and a stable ``code``
clients can switch on.
"""

from __future__ import annotations


class GlitchError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GlitchError):
    """Malformed input: missing title, coordinates out of range, bad score."""

    status_code = 400
    code = "validation_error"


class AccessDeniedError(GlitchError):
    status_code = 403
    code = "access_denied"


class NotFoundError(GlitchError):
    status_code = 404
    code = "not_found"


class ConflictError(GlitchError):
    """Duplicate membership or duplicate review."""

    status_code = 409
    code = "conflict"


class CapacityError(GlitchError):
    status_code = 409
    code = "quest_full"


class QuotaExceededError(GlitchError):
    """Free-tier creation limit reached."""

    status_code = 403
    code = "quota_exceeded"
