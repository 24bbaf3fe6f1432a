"""Natural-language filter extraction and keyword tokenisation for product queries."""

from __future__ import annotations

import re
from collections.abc import Iterable

from shopfront_lite.storage.models import SearchFilters

STOP_WORDS = frozenset(
    {
        "show", "me", "find", "search", "for", "the", "a", "an", "i", "want", "need",
        "get", "looking", "browse", "some", "any", "have", "do", "you", "your", "what",
        "can", "my", "im", "i'm", "am", "please", "help", "with", "of", "in", "on", "to",
        "is", "it", "that", "this",
        # price phrasing, consumed by extract_price_range
        "under", "below", "less", "than", "over", "more", "least", "between", "and",
    }
)  # fmt: skip

KNOWN_CATEGORIES = ("Outerwear", "Basics", "Accessories", "Home", "Apparel", "Footwear")

_AMOUNT = r"\$?(\d+(?:,\d{3})*(?:\.\d{1,2})?)"
_UNDER_RE = re.compile(rf"\b(?:under|less than|below)\s*{_AMOUNT}", re.IGNORECASE)
_OVER_RE = re.compile(rf"\b(?:over|more than|at least)\s*{_AMOUNT}", re.IGNORECASE)
_PLUS_RE = re.compile(r"\$(\d+(?:,\d{3})*(?:\.\d{1,2})?)\+")
_BETWEEN_RE = re.compile(rf"\bbetween\s*{_AMOUNT}\s*(?:and|-)\s*{_AMOUNT}", re.IGNORECASE)
_TOKEN_RE = re.compile(r"[\w']+")


def _amount(raw: str) -> float:
    return float(raw.replace(",", ""))


def tokenize(query: str) -> list[str]:
    """Lower-cased words longer than two characters; stop words and bare numbers removed."""
    words = _TOKEN_RE.findall(query.lower())
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS and not w.isdigit()]


def extract_price_range(query: str) -> tuple[float | None, float | None]:
    """Price bounds from phrases like "under $500", "$200+" or "between 100 and 300"."""
    min_price: float | None = None
    max_price: float | None = None

    if m := _UNDER_RE.search(query):
        max_price = _amount(m.group(1))
    if m := (_OVER_RE.search(query) or _PLUS_RE.search(query)):
        min_price = _amount(m.group(1))
    if m := _BETWEEN_RE.search(query):
        min_price, max_price = _amount(m.group(1)), _amount(m.group(2))
    return min_price, max_price


def extract_category(query: str, categories: Iterable[str] = KNOWN_CATEGORIES) -> str | None:
    """First known category named anywhere in the query."""
    lowered = query.lower()
    for category in categories:
        if re.search(rf"\b{re.escape(category.lower())}\b", lowered):
            return category
    return None


def resolve_filters(
    query: str,
    explicit: SearchFilters | None = None,
    categories: Iterable[str] = KNOWN_CATEGORIES,
) -> SearchFilters:
    """Merge filters extracted from the query text under any explicit ones."""
    explicit = explicit or SearchFilters()
    min_price, max_price = extract_price_range(query)
    return SearchFilters(
        category=explicit.category or extract_category(query, categories),
        min_price=explicit.min_price if explicit.min_price is not None else min_price,
        max_price=explicit.max_price if explicit.max_price is not None else max_price,
    )
