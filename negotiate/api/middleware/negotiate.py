"""Content negotiation middleware selecting a representation format per request.

This middleware decides which of a configured set of formats to serve:
1. An explicit query parameter (e.g. ``/foo?format=xml``), if configured
2. An explicit path extension (e.g. ``/foo.xml``), if configured
3. Server-driven negotiation over the Accept-family request headers

The chosen format name is published to the wrapped application in the ASGI
scope under ``negotiate.format``, and the response gets Content-Type and
Content-Language headers for that format unless it already carries them.

Usage:
    from negotiate import NegotiateMiddleware

    app.add_middleware(
        NegotiateMiddleware,
        formats={
            "xml": {"type": "application/xml", "charset": "utf-8"},
            "html": {"type": "text/html", "language": "en"},
        },
        parameter="format",
        extension="strip",
    )

RFC References:
- RFC 2295: Transparent Content Negotiation in HTTP
- RFC 7231 Section 3.4.1: Proactive (server-driven) negotiation
- RFC 7231 Section 7.1.4: Vary header for caching
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from starlette import status
from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import HTTPConnection
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from negotiate.core.config import get_settings
from negotiate.core.exceptions import InvalidExtensionModeError
from negotiate.core.formats import FormatAttributes, FormatSpec, FormatTable, Variant
from negotiate.core.logging import (
    TRACE,
    get_logger,
    reset_negotiated_format_context,
    set_negotiated_format_context,
)
from negotiate.core.negotiation import NEGOTIATION_HEADERS, choose


# Scope key carrying the negotiated format name (or None)
FORMAT_SCOPE_KEY = "negotiate.format"

# Sources reported by trace diagnostics
SOURCE_PARAMETER = "query parameter"
SOURCE_EXTENSION = "extension"
SOURCE_NEGOTIATION = "HTTP negotiation"

_EXTENSION_RE = re.compile(r"\.([^./]+)$")


class ExtensionMode(StrEnum):
    """How a matching path extension is treated."""

    STRIP = "strip"
    KEEP = "keep"


@dataclass(frozen=True, slots=True)
class NegotiationConfig:
    """Explicit selection settings.

    Attributes:
        parameter: Query parameter selecting a format by name, or None
        extension: Path extension handling, or None to ignore extensions
        explicit: Disable header-based negotiation entirely
    """

    parameter: str | None = None
    extension: ExtensionMode | None = None
    explicit: bool = False

    @classmethod
    def build(
        cls,
        parameter: str | None = None,
        extension: ExtensionMode | str | None = None,
        explicit: bool = False,
    ) -> NegotiationConfig:
        """Build a config, validating the extension mode."""
        mode: ExtensionMode | None
        if extension is None or extension == "":
            mode = None
        else:
            try:
                mode = ExtensionMode(extension)
            except ValueError as e:
                raise InvalidExtensionModeError(extension) from e
        return cls(parameter=parameter or None, extension=mode, explicit=bool(explicit))


async def not_acceptable(scope: Scope, receive: Receive, send: Send) -> None:
    """Terminal application answering every request with 406 Not Acceptable."""
    response = Response(
        "Not Acceptable",
        status_code=status.HTTP_406_NOT_ACCEPTABLE,
        headers={"Content-Type": "text/plain"},
    )
    await response(scope, receive, send)


def get_negotiated_format(connection: HTTPConnection | Scope) -> str | None:
    """Return the format negotiated for a request.

    Args:
        connection: Starlette request/connection or raw ASGI scope

    Returns:
        Format name, or None if no format was determined
    """
    scope = connection.scope if isinstance(connection, HTTPConnection) else connection
    return scope.get(FORMAT_SCOPE_KEY)


def _strip_suffix(scope: Scope, suffix: str) -> Scope:
    """Return a copy of scope with ``.<suffix>`` removed from the request path."""
    tail = "." + suffix
    effective = dict(scope)
    path: str = scope["path"]
    effective["path"] = path[: -len(tail)]

    raw_path: bytes | None = scope.get("raw_path")
    if raw_path is not None:
        # raw_path is percent-encoded, while path holds the decoded text
        for raw_tail in (quote(tail).encode("ascii"), tail.encode("utf-8")):
            if raw_path.endswith(raw_tail):
                effective["raw_path"] = raw_path[: -len(raw_tail)]
                break
    return effective


class NegotiateMiddleware:
    """ASGI middleware applying HTTP content negotiation.

    The middleware never mutates the incoming scope. Any path rewrite and
    the negotiated format live in a shallow copy that is handed to the
    downstream application only, so outer middleware keeps seeing the
    original request.

    Attributes:
        formats: Immutable format table
        config: Explicit selection settings
        trace: Whether TRACE diagnostics are emitted
        add_vary_header: Whether negotiated responses get a Vary header
    """

    def __init__(
        self,
        app: ASGIApp | None = None,
        *,
        formats: FormatTable | Mapping[str, FormatSpec | Mapping[str, Any] | None] | None = None,
        parameter: str | None = None,
        extension: ExtensionMode | str | None = None,
        explicit: bool = False,
        logger: logging.Logger | None = None,
        trace: bool | None = None,
        add_vary_header: bool = False,
    ) -> None:
        """Initialize content negotiation middleware.

        Args:
            app: Wrapped ASGI application; a 406 responder when omitted
            formats: Format table or mapping of format names to definitions,
                with optional defaults under the ``_`` key
            parameter: Query parameter for explicit format selection
            extension: ``"strip"`` or ``"keep"`` to enable path extension selection
            explicit: Disable header-based negotiation
            logger: Logger receiving diagnostics (default: module logger)
            trace: Emit TRACE diagnostics; defaults to the NEGOTIATE_TRACE setting
            add_vary_header: Add negotiated request headers to Vary

        Raises:
            ConfigurationError: If the format table or settings are invalid
        """
        self.formats = (
            formats if isinstance(formats, FormatTable) else FormatTable.from_mapping(formats)
        )
        self.config = NegotiationConfig.build(parameter, extension, explicit)
        self.app: ASGIApp = app if app is not None else not_acceptable
        self.logger = logger if logger is not None else get_logger(__name__)
        self.trace = get_settings().trace if trace is None else trace
        self.add_vary_header = add_vary_header
        self._variants = tuple(self.formats.variants())
        self._vary = self._vary_fields()

    def _vary_fields(self) -> tuple[str, ...]:
        fields = ["Accept"]
        attributes = {
            "Accept-Charset": "charset",
            "Accept-Language": "language",
            "Accept-Encoding": "encoding",
        }
        for header, attribute in attributes.items():
            if any(getattr(variant, attribute) for variant in self._variants):
                fields.append(header)
        return tuple(fields)

    def _trace(self, format_name: str | None, source: str, scope: Scope) -> None:
        if not self.trace:
            return
        self.logger.log(
            TRACE,
            f"Format {format_name!r} selected by {source}",
            extra={
                "negotiated_format": format_name,
                "source": source,
                "path": scope.get("path"),
            },
        )

    def about(self, name: str | None) -> FormatAttributes | None:
        """Return the effective attributes of a format (see FormatTable.about)."""
        return self.formats.about(name)

    def variants(self) -> list[Variant]:
        """Return the negotiation variants of all named formats."""
        return list(self._variants)

    def negotiate(self, scope: Scope) -> tuple[str | None, Scope, str | None]:
        """Determine the format for a request.

        Args:
            scope: Incoming ASGI HTTP scope (left untouched)

        Returns:
            Tuple of (format name or None, effective scope for the downstream
            application, source of the decision or None)
        """
        connection = HTTPConnection(scope)
        effective: Scope = scope

        if self.config.parameter is not None:
            value = connection.query_params.get(self.config.parameter)
            if value and value in self.formats:
                self._trace(value, SOURCE_PARAMETER, scope)
                return value, self._publish(effective, value), SOURCE_PARAMETER

        if self.config.extension is not None:
            match = _EXTENSION_RE.search(scope.get("path", ""))
            if match and match.group(1) in self.formats:
                format_name = match.group(1)
                if self.config.extension is ExtensionMode.STRIP:
                    effective = _strip_suffix(scope, format_name)
                self._trace(format_name, SOURCE_EXTENSION, scope)
                return format_name, self._publish(effective, format_name), SOURCE_EXTENSION

        if self.config.explicit:
            return None, self._publish(effective, None), None

        format_name = choose(self._variants, self._negotiation_headers(connection.headers))
        self._trace(format_name, SOURCE_NEGOTIATION, scope)
        return format_name, self._publish(effective, format_name), SOURCE_NEGOTIATION

    @staticmethod
    def _negotiation_headers(headers: Headers) -> dict[str, str]:
        result: dict[str, str] = {}
        for name in NEGOTIATION_HEADERS:
            values = headers.getlist(name)
            if values:
                result[name] = ", ".join(values)
        return result

    @staticmethod
    def _publish(scope: Scope, format_name: str | None) -> Scope:
        effective = dict(scope)
        effective[FORMAT_SCOPE_KEY] = format_name
        return effective

    def add_headers(self, headers: MutableHeaders, name: str | None) -> None:
        """Add representation headers for a format unless already present.

        Args:
            headers: Response headers, edited in place
            name: Negotiated format name
        """
        attributes = self.formats.about(name)
        if attributes is None:
            return

        if "content-type" not in headers and attributes.type:
            content_type = attributes.type
            if attributes.charset:
                content_type += f"; charset={attributes.charset}"
            headers.append("Content-Type", content_type)

        if attributes.language and "content-language" not in headers:
            headers.append("Content-Language", attributes.language)

    def _merge_vary(self, headers: MutableHeaders) -> None:
        existing = headers.get("vary", "")
        present = {v.strip().lower() for v in existing.split(",") if v.strip()}
        if "*" in present:
            return
        missing = [field for field in self._vary if field.lower() not in present]
        if not missing:
            return
        if existing:
            headers["Vary"] = ", ".join([existing, *missing])
        else:
            headers["Vary"] = ", ".join(missing)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        format_name, effective, source = self.negotiate(scope)
        downstream = self.formats.app_for(format_name) or self.app

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                self.add_headers(headers, format_name)
                if self.add_vary_header and source == SOURCE_NEGOTIATION:
                    self._merge_vary(headers)
            await send(message)

        token = set_negotiated_format_context(format_name)
        try:
            await downstream(effective, receive, send_with_headers)
        finally:
            reset_negotiated_format_context(token)
