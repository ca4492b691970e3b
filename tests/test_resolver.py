"""Unit tests for placeholder resolution."""

import logging

from docmerge.resolver import PlaceholderResolver, overlapping_fields, unmatched_tokens
from docmerge.table_reader import Table
from docmerge.template_store import load_template


class TestPlaceholderResolver:
    """Test suite for PlaceholderResolver."""

    def test_replaces_all_occurrences(self):
        """Test that every occurrence of a token is replaced."""
        table = Table({"Name": ["Ann"]})
        resolver = PlaceholderResolver(table, 0)

        assert resolver.resolve_text("@Name and @Name") == "Ann and Ann"

    def test_values_are_formatted(self):
        """Test that integer-valued decimals are normalized on substitution."""
        table = Table({"Qty": ["5.0"], "Price": ["5.25"]})
        resolver = PlaceholderResolver(table, 0)

        assert resolver.resolve_text("@Qty x @Price") == "5 x 5.25"

    def test_case_sensitive(self):
        """Test that tokens only match with the exact field-name case."""
        resolver = PlaceholderResolver(Table({"Name": ["Ann"]}), 0)
        assert resolver.resolve_text("@name") == "@name"

    def test_no_word_boundaries(self):
        """Test that a token glued to following text is still replaced."""
        resolver = PlaceholderResolver(Table({"Name": ["Ann"]}), 0)
        assert resolver.resolve_text("@Name's file") == "Ann's file"

    def test_out_of_range_is_empty(self, caplog):
        """Test that a short field substitutes '' and logs at debug level."""
        table = Table({"A": ["1", "2", "3"], "B": ["x"]})

        with caplog.at_level(logging.DEBUG, logger="docmerge"):
            text = PlaceholderResolver(table, 2).resolve_text("[@A|@B]")

        assert text == "[3|]"
        assert "out of range" in caplog.text

    def test_empty_value_in_range(self):
        """Test that an empty in-range value also substitutes ''."""
        table = Table({"A": ["1", "2", "3"], "B": ["x", "", ""]})
        assert PlaceholderResolver(table, 1).resolve_text("@B") == ""

    def test_text_without_tokens_untouched(self):
        """Test that text without '@' is returned as is."""
        resolver = PlaceholderResolver(Table({"Name": ["Ann"]}), 0)
        assert resolver.resolve_text("plain") == "plain"
        assert resolver.resolve_text("") == ""

    def test_apply_on_text_nodes(self, make_template):
        """Test that apply edits w:t nodes in place and counts the changed ones."""
        template = load_template(str(make_template(["Dear @Name,", "Static"])))
        clone = template.clone()

        changed = PlaceholderResolver(Table({"Name": ["Ann"]}), 0).apply(clone.text_nodes())

        assert changed == 1
        assert "Dear Ann," in clone.text()
        assert "Static" in clone.text()

    def test_values_snapshot(self):
        """Test that values() reports every field for the row."""
        table = Table({"A": ["1.0"], "B": []})
        assert PlaceholderResolver(table, 0).values() == {"A": "1", "B": ""}


class TestTokenAnalysis:
    """Test suite for token helpers."""

    def test_overlapping_fields(self):
        """Test that prefix-related field names are reported."""
        pairs = overlapping_fields(["Name", "NameFull", "City"])
        assert pairs == [("Name", "NameFull")]

    def test_no_overlap(self):
        """Test that unrelated names produce no pairs."""
        assert overlapping_fields(["A", "B"]) == []

    def test_unmatched_tokens(self):
        """Test that tokens no field resolves are listed once each."""
        text = "@Name lives in @Town, @Town; @Name."
        assert unmatched_tokens(text, ["Name", "City"]) == ["Town,", "Town;"]

    def test_prefix_match_counts_as_matched(self):
        """Test that a token followed by punctuation still counts as matched."""
        assert unmatched_tokens("Hi @Name!", ["Name"]) == []
