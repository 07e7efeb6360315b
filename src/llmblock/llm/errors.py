"""Error types raised by the LLM request pipeline.

Each error carries a machine-readable code plus a human-readable message so
hosts can surface failures consistently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes attached to pipeline errors."""

    # Command construction
    INVALID_OPTION_VALUE = "invalid_option_value"
    PATH_EXPANSION_FAILED = "path_expansion_failed"

    # Request lifecycle
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_REQUEST = "duplicate_request"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class LLMBlockError(Exception):
    """Base exception class for all pipeline errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ConfigurationError(LLMBlockError):
    """Raised when request options or settings cannot be turned into a command."""

    error_code: str = field(default=ErrorCode.INVALID_OPTION_VALUE)
    message: str = field(default="Invalid request configuration")
    details: dict[str, Any] = field(default_factory=dict)

    option: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.option is not None:
            result["option"] = self.option
        return result


@dataclass
class InvalidTransitionError(LLMBlockError):
    """Raised when a request is moved out of a terminal state."""

    error_code: str = field(default=ErrorCode.INVALID_TRANSITION)
    message: str = field(default="Invalid request state transition")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "InvalidTransitionError",
    "LLMBlockError",
]
