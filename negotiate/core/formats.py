"""Format table: named representations plus inherited defaults.

A format table is built from a mapping such as::

    {
        "xml": {"type": "application/xml", "charset": "utf-8"},
        "html": {"type": "text/html", "language": "en"},
        "_": {"quality": 0.9},
    }

The reserved ``_`` key supplies default attribute values for every other
entry. It is lifted into ``FormatTable.defaults`` and never appears among
the named formats.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from negotiate.core.exceptions import (
    InvalidFormatError,
    MissingFormatsError,
    MissingMediaTypeError,
)

# Reserved key of the default entry in user supplied format mappings
DEFAULT_KEY = "_"

# Quality assumed when neither a format nor the defaults declare one
DEFAULT_QUALITY = 1.0


class FormatSpec(BaseModel):
    """One representation of a resource.

    Attributes:
        media_type: Media type, e.g. ``application/xml`` (key ``type``)
        charset: Charset appended to Content-Type and matched against Accept-Charset
        language: Content-Language value, matched against Accept-Language
        quality: Source quality in [0, 1]
        encoding: Content encoding(s), matched against Accept-Encoding only
        app: Dedicated ASGI application serving this format
        size: Accepted for compatibility and ignored, variants always report 0
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    media_type: str | None = Field(default=None, alias="type", min_length=1)
    charset: str | None = Field(default=None, min_length=1)
    language: str | None = Field(default=None, min_length=1)
    quality: float | None = Field(default=None, ge=0.0, le=1.0)
    encoding: str | None = Field(default=None, min_length=1)
    app: Callable[..., Any] | None = None
    size: int | None = Field(default=None, ge=0, exclude=True)


class FormatAttributes(NamedTuple):
    """Effective attributes of a format after merging in the defaults."""

    quality: float
    type: str | None
    encoding: str | None
    charset: str | None
    language: str | None


class Variant(NamedTuple):
    """Negotiation input describing one format.

    Size based selection is not supported, so ``size`` is always 0.
    """

    name: str
    quality: float
    type: str | None
    encoding: str | None
    charset: str | None
    language: str | None
    size: int = 0


def _to_spec(name: str, entry: FormatSpec | Mapping[str, Any] | None) -> FormatSpec:
    if entry is None:
        return FormatSpec()
    if isinstance(entry, FormatSpec):
        return entry
    if not isinstance(entry, Mapping):
        raise InvalidFormatError(
            name, errors=[f"expected a mapping or FormatSpec, got {type(entry).__name__}"]
        )
    try:
        return FormatSpec.model_validate(dict(entry))
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(loc) for loc in err['loc']) or name}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidFormatError(name, errors=errors) from e


@dataclass(frozen=True)
class FormatTable:
    """Immutable table of named formats and their shared defaults."""

    defaults: FormatSpec
    named: Mapping[str, FormatSpec]

    @classmethod
    def from_mapping(
        cls, formats: Mapping[str, FormatSpec | Mapping[str, Any] | None] | None
    ) -> FormatTable:
        """Build and validate a table from a format mapping.

        Raises:
            MissingFormatsError: If the mapping is empty or None
            InvalidFormatError: If an entry fails validation
            MissingMediaTypeError: If a format has no media type to use
        """
        if not formats:
            raise MissingFormatsError()

        defaults = _to_spec(DEFAULT_KEY, formats.get(DEFAULT_KEY))
        named: dict[str, FormatSpec] = {}
        for name, entry in formats.items():
            if name == DEFAULT_KEY:
                continue
            if not isinstance(name, str) or not name:
                raise InvalidFormatError(str(name), errors=["format name must be a non-empty string"])
            named[name] = _to_spec(name, entry)
        named = dict(sorted(named.items()))

        if defaults.media_type is None:
            for name, spec in named.items():
                if spec.media_type is None:
                    raise MissingMediaTypeError(name)

        return cls(defaults=defaults, named=MappingProxyType(named))

    def __contains__(self, name: object) -> bool:
        return name in self.named

    def __iter__(self) -> Iterator[str]:
        return iter(self.named)

    def __len__(self) -> int:
        return len(self.named)

    def about(self, name: str | None) -> FormatAttributes | None:
        """Return the effective attributes of a format.

        Each attribute is the format's own value if set, else the default
        entry's value. Quality falls back to 1.0 when neither is set.

        Args:
            name: Format name

        Returns:
            Merged attributes, or None for an unknown name or the reserved default key
        """
        if name is None or name == DEFAULT_KEY:
            return None
        spec = self.named.get(name)
        if spec is None:
            return None

        default = self.defaults
        quality = spec.quality if spec.quality is not None else default.quality
        return FormatAttributes(
            quality=quality if quality is not None else DEFAULT_QUALITY,
            type=spec.media_type if spec.media_type is not None else default.media_type,
            encoding=spec.encoding if spec.encoding is not None else default.encoding,
            charset=spec.charset if spec.charset is not None else default.charset,
            language=spec.language if spec.language is not None else default.language,
        )

    def variants(self) -> list[Variant]:
        """Return one negotiation variant per named format, sorted by name."""
        result: list[Variant] = []
        for name in sorted(self.named):
            attrs = self.about(name)
            if attrs is None:
                continue
            result.append(
                Variant(
                    name=name,
                    quality=attrs.quality,
                    type=attrs.type,
                    encoding=attrs.encoding,
                    charset=attrs.charset,
                    language=attrs.language,
                )
            )
        return result

    def app_for(self, name: str | None) -> Callable[..., Any] | None:
        """Return the dedicated application of a format, if it has one."""
        if name is None:
            return None
        spec = self.named.get(name)
        return spec.app if spec is not None else None
