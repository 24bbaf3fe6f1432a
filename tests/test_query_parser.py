"""Tests for query tokenising and natural-language filter extraction."""

from shopfront_lite.search.query_parser import (
    extract_category,
    extract_price_range,
    resolve_filters,
    tokenize,
)
from shopfront_lite.storage.models import SearchFilters


class TestTokenize:
    def test_drops_stop_words_and_short_words(self):
        assert tokenize("Show me a warm wool coat") == ["warm", "wool", "coat"]

    def test_drops_numbers_and_price_words(self):
        assert tokenize("boots under 500") == ["boots"]

    def test_empty_query(self):
        assert tokenize("") == []
        assert tokenize("show me the") == []


class TestExtractPriceRange:
    def test_under(self):
        assert extract_price_range("jackets under $400") == (None, 400.0)

    def test_less_than(self):
        assert extract_price_range("something less than 1,200") == (None, 1200.0)

    def test_over(self):
        assert extract_price_range("rings over $100") == (100.0, None)

    def test_plus_suffix(self):
        assert extract_price_range("gifts $250+") == (250.0, None)

    def test_between(self):
        assert extract_price_range("lamps between 200 and 700") == (200.0, 700.0)

    def test_no_price(self):
        assert extract_price_range("cozy blanket") == (None, None)

    def test_word_boundary(self):
        """'thunder 50' must not read as 'under 50'."""
        assert extract_price_range("thunder 50") == (None, None)


class TestExtractCategory:
    def test_known_category(self):
        assert extract_category("show me some footwear") == "Footwear"

    def test_case_insensitive(self):
        assert extract_category("HOME decor") == "Home"

    def test_whole_words_only(self):
        assert extract_category("homemade jam") is None
        assert extract_category("xylophone", ["X"]) is None

    def test_custom_categories(self):
        assert extract_category("anything in x please", ["X", "Y"]) == "X"


class TestResolveFilters:
    def test_extracted_from_query(self):
        filters = resolve_filters("accessories under $300")
        assert filters == SearchFilters(category="Accessories", max_price=300.0)

    def test_explicit_wins(self):
        explicit = SearchFilters(category="Home", max_price=1000)
        filters = resolve_filters("accessories under $300", explicit)
        assert filters.category == "Home"
        assert filters.max_price == 1000
        assert filters.min_price is None
