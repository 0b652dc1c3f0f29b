"""Tests for catalog ordering and the base-book priority list."""

import json
from pathlib import Path

from seforim_index.ingestion.ordering import (
    apply_priority_ordering,
    load_priority_list,
    normalize_priority_entry,
    parse_table_of_contents_orders,
)
from seforim_index.models.payload import BookPayload


def _book(categories: list[str], he_title: str) -> BookPayload:
    return BookPayload(he_title=he_title, en_title=he_title, categories=categories)


class TestTableOfContentsOrders:
    def test_parses_categories_and_books(self, tmp_path: Path) -> None:
        toc = [
            {
                "category": "Tanakh",
                "heCategory": "תנ\"ך",
                "order": 1,
                "contents": [
                    {
                        "category": "Torah",
                        "heCategory": "תורה",
                        "order": 1,
                        "contents": [
                            {"title": "Genesis", "heTitle": "בראשית", "order": 1},
                            {"title": "Exodus", "heTitle": "שמות", "order": 2},
                        ],
                    },
                    {"title": "Rashi on Genesis", "heTitle": "רש\"י על בראשית", "base_text_order": 7},
                ],
            },
            {"category": "Unordered"},
        ]
        (tmp_path / "table_of_contents.json").write_text(json.dumps(toc), encoding="utf-8")

        orders = parse_table_of_contents_orders(tmp_path)

        assert orders.categories["Tanakh"] == 1
        assert orders.categories["תנ\"ך"] == 1
        assert orders.categories["תנ״ך"] == 1
        assert orders.categories["תנ\"ך/תורה"] == 1
        assert "Unordered" not in orders.categories
        assert orders.books["Exodus"] == 2
        assert orders.books["שמות"] == 2
        assert orders.books["Rashi on Genesis"] == 7
        assert orders.books["רש״י על בראשית"] == 7

    def test_missing_file(self, tmp_path: Path) -> None:
        orders = parse_table_of_contents_orders(tmp_path)
        assert orders.categories == {}
        assert orders.books == {}

    def test_malformed_file(self, tmp_path: Path) -> None:
        (tmp_path / "table_of_contents.json").write_text("{}", encoding="utf-8")
        orders = parse_table_of_contents_orders(tmp_path)
        assert orders.books == {}

    def test_malformed_entry_keeps_earlier_orders(self, tmp_path: Path) -> None:
        toc = [
            {"category": "Tanakh", "order": 1, "contents": [{"title": "Genesis", "order": 1}]},
            {"category": "Mishnah", "order": 2, "contents": 5},
            {"category": "Talmud", "order": 3},
        ]
        (tmp_path / "table_of_contents.json").write_text(json.dumps(toc), encoding="utf-8")

        orders = parse_table_of_contents_orders(tmp_path)

        assert orders.categories["Tanakh"] == 1
        assert orders.categories["Mishnah"] == 2
        assert "Talmud" not in orders.categories
        assert orders.books["Genesis"] == 1


class TestPriorityList:
    def test_load_skips_comments_and_blanks(self, tmp_path: Path) -> None:
        path = tmp_path / "priority.txt"
        path.write_text(
            "# base books\n\nתנ\"ך\\תורה\\בראשית\n  תלמוד / בבלי / ברכות  \n", encoding="utf-8"
        )
        assert load_priority_list(path) == ["תנ״ך/תורה/בראשית", "תלמוד/בבלי/ברכות"]

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_priority_list(tmp_path / "absent.txt") == []
        assert load_priority_list(None) == []

    def test_normalize_entry(self) -> None:
        assert normalize_priority_entry('a//"b"\\c') == "a/״b״/c"


class TestApplyPriorityOrdering:
    def test_listed_books_come_first(self) -> None:
        rashi = _book(["תנ״ך", "מפרשים"], "רש״י")
        genesis = _book(["תנ״ך", "תורה"], "בראשית")
        exodus = _book(["תנ״ך", "תורה"], "שמות")

        ordered, missing = apply_priority_ordering(
            [rashi, genesis, exodus],
            ["תנ״ך/תורה/שמות", "תנ״ך/תורה/בראשית", "תנ״ך/תורה/שמות", "אחר/ספר"],
        )

        assert [book.he_title for book in ordered] == ["שמות", "בראשית", "רש״י"]
        assert missing == ["אחר/ספר"]

    def test_no_entries_keeps_order(self) -> None:
        books = [_book(["a"], "x"), _book(["a"], "y")]
        ordered, missing = apply_priority_ordering(books, [])
        assert ordered == books
        assert missing == []
