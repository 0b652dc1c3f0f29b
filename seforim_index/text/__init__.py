"""Text utilities: Hebrew numerals and citation normalization."""

from seforim_index.text.citations import (
    canonical_base,
    canonical_citation,
    canonical_tail,
    normalize_citation,
    normalize_title_key,
    range_start,
    sanitize_folder,
    strip_book_alias,
    trim_trailing_separators,
)
from seforim_index.text.numerals import (
    parse_leaf_index,
    to_alphabetic_numeral,
    to_ascii_leaf_notation,
    to_leaf_notation,
)

__all__ = [
    "canonical_base",
    "canonical_citation",
    "canonical_tail",
    "normalize_citation",
    "normalize_title_key",
    "parse_leaf_index",
    "range_start",
    "sanitize_folder",
    "strip_book_alias",
    "to_alphabetic_numeral",
    "to_ascii_leaf_notation",
    "to_leaf_notation",
    "trim_trailing_separators",
]
