"""
Tests for the style-engine adapter helpers.

Test Strategy
-------------
- Markup post-processing: unescape_markup(), link_urls()
- Style XML handling with lxml: inject_locale(), read_layout()
- EngineFactory scoping helpers
- CiteprocEngineFactory wiring with a stub style loader
- CiteprocEngine id mapping and pass bookkeeping, bibliography mocked

The citeproc-py engine itself is exercised in the integration tests.
"""

from unittest.mock import MagicMock, patch

import pytest
from lxml import etree

from citeweave.citation.engine import (
    CSL_NS,
    CiteprocEngine,
    CiteprocEngineFactory,
    inject_locale,
    link_urls,
    read_layout,
    unescape_markup,
)
from citeweave.citation.models import CitationItem, Cluster
from citeweave.citation.references import ReferenceStore
from citeweave.core.exceptions import ReferenceLookupError, SetupError

STYLE_XML = f"""<?xml version="1.0" encoding="utf-8"?>
<style xmlns="{CSL_NS}" version="1.0" class="in-text">
  <info><title>Tiny</title><id>tiny</id></info>
  <citation><layout><text variable="title"/></layout></citation>
  <bibliography line-spacing="2" hanging-indent="true">
    <layout><text variable="title"/></layout>
  </bibliography>
</style>"""

LOCALE_XML = f"""<?xml version="1.0" encoding="utf-8"?>
<locale xmlns="{CSL_NS}" version="1.0" xml:lang="en-GB">
  <info><updated>2020-01-01T00:00:00+00:00</updated></info>
  <terms><term name="and">and</term></terms>
</locale>"""


def _children(xml):
    root = etree.fromstring(xml.encode("utf-8"))
    return [etree.QName(child).localname for child in root]


class TestUnescapeMarkup:
    """Tests for unescape_markup()."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("&lt;i&gt;Title&lt;/i&gt;", "<i>Title</i>"),
            ("&#60;b&#62;x&#60;/b&#62;", "<b>x</b>"),
            ("Smith &amp; Jones", "Smith &amp; Jones"),
        ],
    )
    def test_unescape(self, text, expected):
        """Test escaped angle brackets are restored, other entities kept."""
        assert unescape_markup(text) == expected


class TestLinkUrls:
    """Tests for link_urls()."""

    def test_bare_url_linked(self):
        """Test a URL becomes an anchor without the trailing period."""
        assert link_urls("See https://example.org/a.") == (
            'See <a href="https://example.org/a">https://example.org/a</a>.'
        )

    def test_doi_linked(self):
        """Test a doi: identifier links to doi.org."""
        assert link_urls("doi:10.1234/test.") == (
            'doi:<a href="https://doi.org/10.1234/test">10.1234/test</a>.'
        )

    def test_existing_anchor_untouched(self):
        """Test URLs already inside an anchor are not linked twice."""
        entry = '<a href="https://example.org">https://example.org</a>'

        assert link_urls(entry) == entry

    def test_plain_text_untouched(self):
        """Test entries without URLs pass through."""
        assert link_urls("Doe, J. (2019). Reactive Documents.") == (
            "Doe, J. (2019). Reactive Documents."
        )


class TestInjectLocale:
    """Tests for inject_locale()."""

    def test_locale_inserted_after_info(self):
        """Test the locale lands after <info> and loses its own <info>."""
        merged = inject_locale(STYLE_XML, LOCALE_XML)

        assert _children(merged) == ["info", "locale", "citation", "bibliography"]
        root = etree.fromstring(merged.encode("utf-8"))
        locale = root.find(f"{{{CSL_NS}}}locale")
        assert locale.find(f"{{{CSL_NS}}}info") is None
        assert locale.find(f"{{{CSL_NS}}}terms") is not None

    def test_style_locales_stay_first(self):
        """Test an in-style locale keeps precedence over the fetched one."""
        style = STYLE_XML.replace(
            "<citation>", '<locale xml:lang="en"><terms/></locale><citation>'
        )

        merged = inject_locale(style, LOCALE_XML)

        assert _children(merged) == ["info", "locale", "locale", "citation", "bibliography"]

    def test_no_locale_returns_style(self):
        """Test a missing locale leaves the style as it was."""
        assert _children(inject_locale(STYLE_XML, None)) == [
            "info", "citation", "bibliography",
        ]

    def test_invalid_style_raises_setup_error(self):
        """Test malformed XML is a setup failure."""
        with pytest.raises(SetupError, match="Invalid CSL style"):
            inject_locale("<style>", LOCALE_XML)

    def test_invalid_locale_raises_setup_error(self):
        """Test a malformed locale is a setup failure."""
        with pytest.raises(SetupError, match="Invalid CSL locale"):
            inject_locale(STYLE_XML, "<locale")


class TestReadLayout:
    """Tests for read_layout()."""

    def test_reads_bibliography_attributes(self):
        """Test line-spacing and hanging-indent are read."""
        assert read_layout(STYLE_XML) == (2.0, True)

    def test_defaults_without_attributes(self):
        """Test defaults when the attributes are absent."""
        style = STYLE_XML.replace(' line-spacing="2" hanging-indent="true"', "")

        assert read_layout(style) == (1.0, False)

    def test_defaults_without_bibliography(self):
        """Test citation-only styles get the defaults."""
        style = f'<style xmlns="{CSL_NS}"><citation/></style>'

        assert read_layout(style) == (1.0, False)

    def test_bad_line_spacing(self):
        """Test an unparsable line-spacing falls back to 1."""
        style = STYLE_XML.replace('line-spacing="2"', 'line-spacing="double"')

        assert read_layout(style)[0] == 1.0


class TestEngineFactory:
    """Tests for CiteprocEngineFactory wiring."""

    @pytest.fixture
    def loader(self):
        return MagicMock(return_value="parsed-style")

    def test_style_loaded_with_locale_merged(self, store, loader):
        """Test the loader receives the merged style and the locale name."""
        factory = CiteprocEngineFactory(
            STYLE_XML, store, locale="en-GB", locale_xml=LOCALE_XML, style_loader=loader
        )

        merged, locale = loader.call_args.args
        assert locale == "en-GB"
        assert "terms" in merged
        assert factory.layout == (2.0, True)
        assert factory.style == "parsed-style"

    def test_scoped_engines(self, store, loader):
        """Test the scoping helpers call the right update method."""
        factory = CiteprocEngineFactory(STYLE_XML, store, style_loader=loader)

        cited = factory.cited_engine(["Smith2020"])
        show_all = factory.show_all_engine(store.ids)

        assert isinstance(cited, CiteprocEngine)
        assert cited._cited == ["smith2020"]
        assert show_all._uncited == store.ids
        assert show_all._cited == []

    def test_engines_share_style(self, store, loader):
        """Test the style is parsed once per factory."""
        factory = CiteprocEngineFactory(STYLE_XML, store, style_loader=loader)

        factory.create_engine()
        factory.create_engine()

        assert loader.call_count == 1


class TestCiteprocEngine:
    """Tests for CiteprocEngine bookkeeping, with the bibliography mocked."""

    @pytest.fixture
    def mixed_store(self):
        return ReferenceStore(
            entries={"Smith2020": {"id": "Smith2020", "title": "T"}},
            source={"smith2020": object()},
        )

    @pytest.fixture
    def bibliography(self):
        bibliography = MagicMock(keys=["smith2020"])
        bibliography.bibliography.return_value = ["Smith (2020) T"]
        return bibliography

    @pytest.fixture
    def engine(self, mixed_store, bibliography):
        engine = CiteprocEngine("style", mixed_store, link_bibliography=False)
        with patch.object(engine, "_new_bibliography", return_value=bibliography):
            yield engine

    def test_entry_ids_use_stored_case(self, engine):
        """Test lowercase engine keys map back to the stored ids."""
        engine.update_items(["Smith2020"])

        meta, entries = engine.make_bibliography()

        assert meta.entry_ids == ("Smith2020",)
        assert entries == ['<div class="csl-entry">Smith (2020) T</div>']

    def test_pass_not_reused_by_next_bibliography(self, engine, bibliography):
        """Test clusters of an earlier pass are not registered again."""
        cluster = Cluster(
            cluster_id="c-1", citation_items=[CitationItem(id="Smith2020")], properties={}
        )
        engine.process_cluster(cluster, [])
        bibliography.register.reset_mock()

        engine.make_bibliography()
        assert bibliography.register.call_count == 1

        bibliography.register.reset_mock()
        engine.make_bibliography()
        bibliography.register.assert_not_called()

    def test_unknown_key_raises_lookup_error(self, engine):
        """Test unknown ids are reported by the engine."""
        engine.update_items(["nobody1999"])

        with pytest.raises(ReferenceLookupError):
            engine.make_bibliography()
