"""
Tests for reference parsing and the reference list.

Test Strategy
-------------
- Input detection: CSL-JSON list, CSL-JSON text, BibTeX text, empty text
- Keys keep their case; lookups are case-insensitive
- Malformed input raises ReferenceParseError
- summaries(): sorted, braces stripped, regex scan fallback
"""

import json

import pytest

from citeweave.citation.references import (
    ReferenceStore,
    parse_references,
    scan_bibtex,
    summary_table,
)
from citeweave.core.exceptions import ReferenceParseError


class TestParseCslJson:
    """Tests for CSL-JSON input."""

    def test_list_input(self, sample_csl_json):
        """Test a list of dicts keeps input order."""
        store = parse_references(sample_csl_json)

        assert store.ids == ["smith2020", "doe2019"]
        assert store.source is not None

    def test_text_input(self, sample_csl_json):
        """Test JSON text is detected by its leading bracket."""
        store = parse_references("  " + json.dumps(sample_csl_json))

        assert len(store) == 2

    def test_single_object(self, sample_csl_json):
        """Test a single JSON object is one reference."""
        store = parse_references(json.dumps(sample_csl_json[0]))

        assert store.ids == ["smith2020"]

    def test_keys_keep_case(self):
        """Test ids keep their case and are looked up case-insensitively."""
        store = parse_references([{"id": "Smith2020", "type": "book", "title": "T"}])

        assert store.ids == ["Smith2020"]
        assert "SMITH2020" in store
        assert store.get("smith2020")["id"] == "Smith2020"
        assert store.resolve("sMiTh2020") == "Smith2020"
        assert store.resolve("nobody") is None

    def test_invalid_json(self):
        """Test broken JSON is a parse error."""
        with pytest.raises(ReferenceParseError, match="Invalid CSL-JSON"):
            parse_references('[{"id": "x",]')

    def test_entry_without_id(self):
        """Test every entry needs a string id."""
        with pytest.raises(ReferenceParseError, match="entry 1"):
            parse_references([{"id": "a"}, {"title": "no id"}])

    def test_wrong_input_type(self):
        """Test only text and lists are accepted."""
        with pytest.raises(ReferenceParseError):
            parse_references(42)


class TestParseBibtex:
    """Tests for BibTeX input."""

    def test_entries_parsed(self, sample_bibtex):
        """Test both sample entries are found."""
        store = parse_references(sample_bibtex)

        assert sorted(store.ids) == ["doe2019", "smith2020"]
        assert store.raw == sample_bibtex

    def test_titles_available(self, sample_bibtex):
        """Test the reference list shows parsed titles."""
        rows = {row.name: row for row in parse_references(sample_bibtex).summaries()}

        assert rows["doe2019"].title == "Reactive Documents"
        assert "Simple" in rows["smith2020"].title

    def test_keys_keep_case(self):
        """Test BibTeX keys are reported as written."""
        store = parse_references(
            "@book{Doe2019,\n  author = {Doe, Jane},\n  title = {Capitals},\n"
            "  publisher = {Example Press},\n  year = {2019}\n}\n"
        )

        assert store.ids == ["Doe2019"]
        assert store.resolve("doe2019") == "Doe2019"
        assert store.summaries()[0].name == "Doe2019"


class TestEmptyInput:
    """Tests for empty reference data."""

    @pytest.mark.parametrize("raw", ["", "   \n", []])
    def test_empty_store(self, raw):
        """Test empty input gives an empty store, not an error."""
        store = parse_references(raw)

        assert store.is_empty()
        assert store.summaries() == []


class TestSummaries:
    """Tests for ReferenceStore.summaries() and helpers."""

    def test_sorted_and_stripped(self, store):
        """Test rows are sorted by id with braces removed from titles."""
        rows = store.summaries()

        assert [row.name for row in rows] == ["doe2019", "roe2021", "smith2020"]
        assert rows[2].title == "A Simple Test"
        assert rows[0].to_dict() == {
            "name": "doe2019",
            "title": "Reactive Documents",
            "type": "book",
        }

    def test_title_lists(self):
        """Test list-valued titles are joined."""
        store = ReferenceStore(entries={"a": {"id": "a", "title": ["One", "Two"]}})

        assert store.summaries()[0].title == "One; Two"

    def test_scan_fallback(self, sample_bibtex):
        """Test an empty store scans its raw BibTeX."""
        store = ReferenceStore(entries={}, raw=sample_bibtex)

        rows = store.summaries()

        assert [row.name for row in rows] == ["doe2019", "smith2020"]
        assert rows[0].type == "book"
        assert rows[0].title == "Reactive Documents"

    def test_scan_bibtex_without_entries(self):
        """Test text without entries scans to nothing."""
        assert scan_bibtex("just some text") == []

    def test_summary_table(self, store):
        """Test the table has a row per reference."""
        table = summary_table(store.summaries(), title="Refs")

        assert table.title == "Refs"
        assert table.row_count == 3
        assert [column.header for column in table.columns] == ["Name", "Title", "Type"]
