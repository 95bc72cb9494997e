"""
Domain errors.

Services raise these; the HTTP layer translates them into JSON responses
in one place (see puretome.api.errors).
"""

from __future__ import annotations


class PureTomeError(Exception):
    """Base exception for domain errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PureTomeError):
    """Missing resource, or a resource the caller may not see."""

    status_code = 404


class ValidationError(PureTomeError):
    """Schema-level field violations."""

    status_code = 400

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def from_pydantic(cls, exc) -> ValidationError:
        """Build from a pydantic ValidationError."""
        errors: dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
            errors.setdefault(field, err.get("msg", "Invalid value"))
        joined = ". ".join(f"{k}: {v}" for k, v in errors.items())
        return cls(f"Validation failed: {joined}", errors)


class ConflictError(PureTomeError):
    """Duplicate record."""

    status_code = 400


class ParameterError(PureTomeError):
    """Missing or malformed request parameters."""

    status_code = 400


class InvitationMismatchError(PureTomeError):
    """Token belongs to a different memoir than the one in the URL."""

    status_code = 400


class InvitationStateError(PureTomeError):
    """Invitation is no longer pending."""

    status_code = 400


class InvitationExpiredError(PureTomeError):
    """Invitation is past its expiry."""

    status_code = 400


class InconsistentStateError(PureTomeError):
    """A record references something that no longer exists."""

    status_code = 404
