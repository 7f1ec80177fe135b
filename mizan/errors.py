"""
Error taxonomy for the rules engine.

Every error carries a stable code, a message and optional structured details,
and can be rendered as an ErrorResponse for the HTTP layer.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class MizanError(Exception):
    """Base exception for the rules engine."""

    code: str = "MIZAN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(code=self.code, message=self.message, details=self.details)


class ConditionParseError(MizanError):
    """A rule condition does not conform to the expression grammar."""

    code = "CONDITION_PARSE_ERROR"

    def __init__(self, message: str, fragment: str = "", position: int = 0):
        self.fragment = fragment
        self.position = position
        super().__init__(
            f"{message} at position {position}: {fragment!r}",
            {"fragment": fragment, "position": position},
        )


class ValidationError(MizanError):
    """A rule or request failed validation."""

    code = "VALIDATION_ERROR"


class NotFoundError(MizanError):
    """A referenced rule does not exist."""

    code = "NOT_FOUND"


class AuthenticationError(MizanError):
    """The supplied API key was rejected."""

    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Invalid API key", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class ExtractionError(MizanError):
    """The rule extraction backend failed."""

    code = "EXTRACTION_ERROR"
