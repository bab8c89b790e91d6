"""HTTP content negotiation middleware for ASGI applications."""

from negotiate.api.middleware import (
    FORMAT_SCOPE_KEY,
    ExtensionMode,
    NegotiateMiddleware,
    NegotiationConfig,
    get_negotiated_format,
    not_acceptable,
)
from negotiate.core.exceptions import (
    ConfigurationError,
    InvalidExtensionModeError,
    InvalidFormatError,
    MissingFormatsError,
    MissingMediaTypeError,
    NegotiateError,
)
from negotiate.core.formats import FormatAttributes, FormatSpec, FormatTable, Variant
from negotiate.core.negotiation import choose, parse_accept_header, rank

__all__ = [
    "FORMAT_SCOPE_KEY",
    "ConfigurationError",
    "ExtensionMode",
    "FormatAttributes",
    "FormatSpec",
    "FormatTable",
    "InvalidExtensionModeError",
    "InvalidFormatError",
    "MissingFormatsError",
    "MissingMediaTypeError",
    "NegotiateError",
    "NegotiateMiddleware",
    "NegotiationConfig",
    "Variant",
    "choose",
    "get_negotiated_format",
    "not_acceptable",
    "parse_accept_header",
    "rank",
]
