"""Unit tests for the format table: validation, default merging and variants."""

import pytest
from hypothesis import given

from negotiate.core.exceptions import (
    ConfigurationError,
    InvalidFormatError,
    MissingFormatsError,
    MissingMediaTypeError,
)
from negotiate.core.formats import (
    DEFAULT_KEY,
    FormatAttributes,
    FormatSpec,
    FormatTable,
    Variant,
)
from negotiate.tests.strategies import format_tables


# =============================================================================
# Construction
# =============================================================================


@pytest.mark.parametrize("formats", [None, {}])
def test_empty_formats_rejected(formats):
    """Test that a format table is mandatory."""
    with pytest.raises(MissingFormatsError):
        FormatTable.from_mapping(formats)


def test_missing_media_type_names_format():
    """Test that a format without type fails when the defaults have none."""
    with pytest.raises(MissingMediaTypeError) as exc_info:
        FormatTable.from_mapping({"xml": {"type": "application/xml"}, "txt": {"charset": "utf-8"}})

    assert exc_info.value.format_name == "txt"
    assert exc_info.value.details == {"format": "txt"}
    assert "txt" in str(exc_info.value)
    assert isinstance(exc_info.value, ConfigurationError)


def test_media_type_inherited_from_defaults():
    """Test that a default type makes per-format types optional."""
    table = FormatTable.from_mapping({"en": {"language": "en"}, "_": {"type": "text/plain"}})

    assert table.about("en").type == "text/plain"


def test_default_entry_created_when_absent(formats):
    """Test that the defaults record exists even without a ``_`` key."""
    table = FormatTable.from_mapping(formats)

    assert table.defaults == FormatSpec()
    assert DEFAULT_KEY not in table
    assert sorted(table) == ["html", "xml"]


def test_only_defaults_is_a_valid_empty_table():
    """Test that a table holding only defaults has no named formats."""
    table = FormatTable.from_mapping({"_": {"charset": "utf-8"}})

    assert len(table) == 0
    assert table.variants() == []


def test_unknown_attribute_rejected():
    """Test that misspelled attributes are reported with the format name."""
    with pytest.raises(InvalidFormatError) as exc_info:
        FormatTable.from_mapping({"xml": {"type": "application/xml", "charest": "utf-8"}})

    assert exc_info.value.details["format"] == "xml"
    assert any("charest" in error for error in exc_info.value.details["errors"])


def test_size_attribute_accepted_and_ignored():
    """Test that a declared size is tolerated but never reaches the variants."""
    table = FormatTable.from_mapping(
        {"xml": {"type": "application/xml", "size": 1024}, "_": {"size": 0}}
    )

    assert table.defaults.size == 0
    assert table.variants()[0].size == 0


@pytest.mark.parametrize("quality", [-0.1, 1.5])
def test_out_of_range_quality_rejected(quality):
    """Test that source quality must lie in [0, 1]."""
    with pytest.raises(InvalidFormatError):
        FormatTable.from_mapping({"xml": {"type": "application/xml", "quality": quality}})


def test_non_mapping_entry_rejected():
    """Test that entries must be mappings or FormatSpec instances."""
    with pytest.raises(InvalidFormatError) as exc_info:
        FormatTable.from_mapping({"xml": "application/xml"})

    assert "str" in exc_info.value.details["errors"][0]


def test_format_spec_instances_accepted():
    """Test that ready FormatSpec objects are used as-is."""
    spec = FormatSpec(media_type="application/json")
    table = FormatTable.from_mapping({"json": spec})

    assert table.named["json"] is spec


def test_named_formats_are_read_only(formats):
    """Test that the table cannot be changed after construction."""
    table = FormatTable.from_mapping(formats)

    with pytest.raises(TypeError):
        table.named["json"] = FormatSpec(media_type="application/json")  # type: ignore[index]


# =============================================================================
# about()
# =============================================================================


@pytest.fixture
def table():
    return FormatTable.from_mapping(
        {
            "xml": {"type": "application/xml", "charset": "utf-8", "quality": 0.8},
            "html": {"type": "text/html", "language": "en"},
            "gz": {"type": "application/gzip", "encoding": "gzip", "language": "de"},
            "_": {"charset": "iso-8859-1", "language": "fr", "quality": 0.5},
        }
    )


def test_about_prefers_own_values(table):
    """Test that a format's own attributes win over the defaults."""
    assert table.about("xml") == FormatAttributes(
        quality=0.8,
        type="application/xml",
        encoding=None,
        charset="utf-8",
        language="fr",
    )


def test_about_inherits_defaults(table):
    """Test that unset attributes come from the defaults."""
    attrs = table.about("html")

    assert attrs.quality == 0.5
    assert attrs.charset == "iso-8859-1"
    assert attrs.language == "en"


def test_about_quality_falls_back_to_one(formats):
    """Test that quality is 1.0 when neither the format nor defaults set it."""
    table = FormatTable.from_mapping(formats)

    assert table.about("xml").quality == 1.0


@given(mapping=format_tables())
def test_about_merge_law_holds_for_every_attribute(mapping):
    """Test own-value-else-default resolution across all formats and attributes."""
    table = FormatTable.from_mapping(mapping)
    defaults = mapping.get(DEFAULT_KEY, {})

    for name in table:
        own = mapping[name]
        attrs = table.about(name)
        for attribute in ("type", "charset", "language", "encoding"):
            assert getattr(attrs, attribute) == own.get(attribute, defaults.get(attribute))
        assert attrs.quality == own.get("quality", defaults.get("quality", 1.0))


@pytest.mark.parametrize("name", ["json", "_", None])
def test_about_unknown_or_reserved_returns_none(table, name):
    """Test that unknown names and the reserved key have no attributes."""
    assert table.about(name) is None


# =============================================================================
# variants()
# =============================================================================


def test_variants_sorted_with_zero_size(table):
    """Test that variants are sorted by name and always report size 0."""
    variants = table.variants()

    assert [v.name for v in variants] == ["gz", "html", "xml"]
    assert all(v.size == 0 for v in variants)
    assert variants[0] == Variant("gz", 0.5, "application/gzip", "gzip", "iso-8859-1", "de", 0)


def test_app_for_returns_dedicated_app():
    """Test lookup of per-format applications."""

    async def json_app(scope, receive, send):
        pass

    table = FormatTable.from_mapping(
        {"json": {"type": "application/json", "app": json_app}, "xml": {"type": "application/xml"}}
    )

    assert table.app_for("json") is json_app
    assert table.app_for("xml") is None
    assert table.app_for("nope") is None
    assert table.app_for(None) is None
