"""Server-driven HTTP content negotiation.

Scores format variants against the Accept, Accept-Charset, Accept-Language
and Accept-Encoding request headers and picks the best one. Each variant
gets the score::

    Q = qs * qe * qc * ql * qt

where ``qs`` is the variant's source quality and ``qe``, ``qc``, ``ql``,
``qt`` are the qualities the client assigns to its encoding, charset,
language and media type. A header that is absent imposes no constraint.

RFC References:
- RFC 2295 Appendix A: remote variant selection algorithm
- RFC 7231 Section 5.3: Accept-* header semantics and quality values
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import NamedTuple

from negotiate.core.formats import Variant

# Headers consulted by the negotiation algorithm
NEGOTIATION_HEADERS: tuple[str, ...] = (
    "accept",
    "accept-charset",
    "accept-language",
    "accept-encoding",
)

# Language quality used when the variant has a language but the client
# listed none of it
UNMATCHED_LANGUAGE_QUALITY = 0.001


class AcceptEntry(NamedTuple):
    """One element of an Accept-family header."""

    value: str
    quality: float
    params: Mapping[str, str]


def _parse_params(segments: Iterable[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for raw_segment in segments:
        name, sep, value = raw_segment.strip().partition("=")
        name = name.strip().lower()
        if not name or not sep:
            continue
        params[name] = value.strip().strip('"')
    return params


def parse_accept_header(accept_header: str | None) -> list[AcceptEntry]:
    """Parse an Accept-family header into entries.

    Values are lower-cased, quality is clamped to [0, 1] and defaults to 1.0
    when missing or invalid. The ``q`` parameter is removed from params;
    Accept-extensions following ``q`` are ignored.

    Args:
        accept_header: Raw header value (may be None or empty)

    Returns:
        Entries in header order. Empty list if header is None or empty.

    Examples:
        >>> parse_accept_header("text/html;level=1;q=0.5, */*;q=0.1")
        [AcceptEntry(value='text/html', quality=0.5, params={'level': '1'}),
         AcceptEntry(value='*/*', quality=0.1, params={})]
    """
    if not accept_header:
        return []

    entries: list[AcceptEntry] = []

    for raw_part in accept_header.split(","):
        stripped_part = raw_part.strip()
        if not stripped_part:
            continue

        segments = stripped_part.split(";")
        value = segments[0].strip().lower()
        if not value:
            continue

        quality = 1.0
        param_segments: list[str] = []
        for raw_segment in segments[1:]:
            stripped_segment = raw_segment.strip()
            if stripped_segment.lower().startswith("q="):
                try:
                    quality = max(0.0, min(1.0, float(stripped_segment[2:].strip())))
                except ValueError:
                    quality = 1.0
                break
            param_segments.append(stripped_segment)

        entries.append(AcceptEntry(value, quality, _parse_params(param_segments)))

    return entries


def _lookup(entries: Sequence[AcceptEntry], value: str) -> float | None:
    wildcard: float | None = None
    for entry in entries:
        if entry.value == value:
            return entry.quality
        if entry.value == "*" and wildcard is None:
            wildcard = entry.quality
    return wildcard


def _encoding_quality(encoding: str | None, accepted: Sequence[AcceptEntry] | None) -> float:
    if accepted is None or not encoding:
        return 1.0
    quality = 1.0
    for value in encoding.split(","):
        value = value.strip().lower()
        if not value:
            continue
        q = _lookup(accepted, value)
        if q is None:
            return 0.0
        quality = min(quality, q)
    return quality


def _charset_quality(charset: str | None, accepted: Sequence[AcceptEntry] | None) -> float:
    if accepted is None or not charset:
        return 1.0
    charset = charset.strip().lower()
    if charset == "us-ascii":
        return 1.0
    q = _lookup(accepted, charset)
    return q if q is not None else 0.0


def _language_quality(language: str | None, accepted: Sequence[AcceptEntry] | None) -> float:
    if accepted is None or not language:
        return 1.0
    exact = {entry.value: entry.quality for entry in reversed(accepted)}
    qualities: list[float] = []
    for tag in language.split(","):
        tag = tag.strip().lower()
        # Try the full tag first, then drop trailing subtags: en-gb-oxendict, en-gb, en
        while tag:
            if tag in exact:
                qualities.append(exact[tag])
                break
            tag = tag.rpartition("-")[0]
        else:
            if "*" in exact:
                qualities.append(exact["*"])
    if qualities:
        return max(qualities)
    return UNMATCHED_LANGUAGE_QUALITY


def _type_quality(media_type: str | None, accepted: Sequence[AcceptEntry] | None) -> float:
    if accepted is None or not media_type:
        return 1.0

    base, *param_segments = media_type.split(";")
    main_type, _, subtype = base.strip().lower().partition("/")
    params = _parse_params(param_segments)

    best_quality = 0.0
    best_specificity = -1
    for entry in accepted:
        accept_main, _, accept_sub = entry.value.partition("/")
        if accept_main == "*" and accept_sub in ("*", ""):
            specificity = 0
        elif accept_main == main_type and accept_sub == "*":
            specificity = 1
        elif accept_main == main_type and accept_sub == subtype:
            if any(params.get(key) != value for key, value in entry.params.items()):
                continue
            specificity = 2 + len(entry.params)
        else:
            continue
        if specificity > best_specificity:
            best_specificity = specificity
            best_quality = entry.quality
    return best_quality


def _accepted(headers: Mapping[str, str]) -> dict[str, list[AcceptEntry] | None]:
    lowered = {key.lower(): value for key, value in headers.items()}
    return {
        name: (parse_accept_header(lowered[name]) if lowered.get(name) else None)
        for name in NEGOTIATION_HEADERS
    }


def score(variant: Variant, headers: Mapping[str, str]) -> float:
    """Compute the negotiation score of a single variant."""
    return _score(variant, _accepted(headers))


def _score(variant: Variant, accepted: Mapping[str, list[AcceptEntry] | None]) -> float:
    qs = variant.quality if variant.quality is not None else 1.0
    return (
        qs
        * _encoding_quality(variant.encoding, accepted["accept-encoding"])
        * _charset_quality(variant.charset, accepted["accept-charset"])
        * _language_quality(variant.language, accepted["accept-language"])
        * _type_quality(variant.type, accepted["accept"])
    )


def rank(variants: Iterable[Variant], headers: Mapping[str, str]) -> list[tuple[str, float]]:
    """Score every variant and order them from best to worst.

    Ties are broken by smaller size, then by the order of ``variants``.

    Args:
        variants: Candidate variants
        headers: Request headers; only the Accept-family headers are read

    Returns:
        List of (format name, score) tuples
    """
    accepted = _accepted(headers)
    scored = [
        (index, variant.name, _score(variant, accepted), variant.size or 0)
        for index, variant in enumerate(variants)
    ]
    scored.sort(key=lambda item: (-item[2], item[3], item[0]))
    return [(name, q) for _, name, q, _ in scored]


def choose(variants: Iterable[Variant], headers: Mapping[str, str]) -> str | None:
    """Select the best variant for a request.

    Args:
        variants: Candidate variants
        headers: Request headers; only the Accept-family headers are read

    Returns:
        Name of the best variant, or None if there are no variants or the
        best one scores 0
    """
    ranking = rank(variants, headers)
    if not ranking:
        return None
    name, best = ranking[0]
    if best <= 0:
        return None
    return name
