"""Exception hierarchy for the content negotiation middleware.

This module provides a small exception hierarchy that:
1. Separates configuration problems from everything else
2. Carries an error code and HTTP status code for structured reporting
3. Exposes structured details (offending format name, validation errors)

Negotiation failure itself is not an exception: it surfaces as a missing
format and the wrapped application decides how to react.
"""

from __future__ import annotations

from typing import Any


class NegotiateError(Exception):
    """Base exception for all negotiation middleware errors."""

    default_message: str = "An unexpected negotiation error occurred"
    default_error_code: str = "NEGOTIATE_ERROR"
    default_status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.status_code = status_code or self.default_status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Configuration Errors (raised at construction time)
class ConfigurationError(NegotiateError):
    default_message = "Configuration error"
    default_error_code = "CONFIGURATION_ERROR"


class MissingFormatsError(ConfigurationError):
    default_message = "A non-empty format table is required"
    default_error_code = "MISSING_FORMATS"


class MissingMediaTypeError(ConfigurationError):
    """Raised when a format has no media type of its own and none to inherit.

    A media type is only optional for a format when the default entry
    declares one.
    """

    default_message = "Format has no media type"
    default_error_code = "MISSING_MEDIA_TYPE"

    def __init__(self, format_name: str, message: str | None = None, **kwargs: Any) -> None:
        self.format_name = format_name
        details = kwargs.pop("details", {}) or {}
        details["format"] = format_name
        super().__init__(
            message or f"Format '{format_name}' has no media type and no default type is set",
            details=details,
            **kwargs,
        )


class InvalidFormatError(ConfigurationError):
    default_message = "Invalid format definition"
    default_error_code = "INVALID_FORMAT"

    def __init__(
        self,
        format_name: str,
        message: str | None = None,
        *,
        errors: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        self.format_name = format_name
        details = kwargs.pop("details", {}) or {}
        details["format"] = format_name
        if errors:
            details["errors"] = errors
        super().__init__(
            message or f"Invalid definition for format '{format_name}'",
            details=details,
            **kwargs,
        )


class InvalidExtensionModeError(ConfigurationError):
    default_message = "Invalid extension mode"
    default_error_code = "INVALID_EXTENSION_MODE"

    def __init__(self, value: Any, **kwargs: Any) -> None:
        details = kwargs.pop("details", {}) or {}
        str_value = str(value)
        details["value"] = str_value[:100] if len(str_value) > 100 else str_value
        details["allowed"] = ["strip", "keep"]
        super().__init__(
            f"Invalid extension mode {value!r}: expected 'strip', 'keep' or None",
            details=details,
            **kwargs,
        )
