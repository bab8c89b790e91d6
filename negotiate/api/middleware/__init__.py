"""API middleware components."""

from .negotiate import (
    FORMAT_SCOPE_KEY,
    ExtensionMode,
    NegotiateMiddleware,
    NegotiationConfig,
    get_negotiated_format,
    not_acceptable,
)

__all__ = [
    "FORMAT_SCOPE_KEY",
    "ExtensionMode",
    "NegotiateMiddleware",
    "NegotiationConfig",
    "get_negotiated_format",
    "not_acceptable",
]
