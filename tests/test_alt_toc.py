"""Tests for alternate TOC construction."""

import pytest

from seforim_index.ingestion.alt_toc import (
    AltTocBuilder,
    book_alias_keys,
    build_child_label,
    compute_address_value,
    map_base_to_hebrew,
    node_label,
)
from seforim_index.models.payload import AltNode, AltStructure, BookPayload, RefEntry


def _genesis(structures: list[AltStructure], categories: list[str] | None = None) -> BookPayload:
    refs = [
        ("Genesis 1:1", "בראשית א, א"),
        ("Genesis 1:2", "בראשית א, ב"),
        ("Genesis 2:1", "בראשית ב, א"),
        ("Genesis 2:2", "בראשית ב, ב"),
    ]
    return BookPayload(
        he_title="בראשית",
        en_title="Genesis",
        categories=categories if categories is not None else ["תנ״ך", "תורה"],
        lines=[f"line {i}" for i in range(len(refs))],
        ref_entries=[
            RefEntry(ref=ref, he_ref=he_ref, line_index=i) for i, (ref, he_ref) in enumerate(refs)
        ],
        alt_structures=structures,
    )


def _berakhot(structures: list[AltStructure]) -> BookPayload:
    refs = ["Berakhot 2a:1", "Berakhot 2a:2", "Berakhot 2b:1", "Berakhot 3a:1"]
    return BookPayload(
        he_title="ברכות",
        en_title="Berakhot",
        categories=["תלמוד", "בבלי", "סדר זרעים"],
        lines=[f"line {i}" for i in range(len(refs))],
        ref_entries=[RefEntry(ref=ref, he_ref="", line_index=i) for i, ref in enumerate(refs)],
        alt_structures=structures,
    )


@pytest.fixture
def parasha() -> AltStructure:
    return AltStructure(
        key="Parasha",
        title="Parasha",
        he_title="פרשה",
        nodes=[
            AltNode(
                title="Bereshit",
                he_title="בראשית",
                whole_ref="Genesis 1:1-2:1",
                refs=["Genesis 1:1-1:2", "Genesis 2:1"],
            ),
            AltNode(title="Noach", he_title="נח", whole_ref="Genesis 2:2"),
        ],
    )


class TestAltTocBuilder:
    def test_entries_with_expanded_refs(self, parasha: AltStructure) -> None:
        builds = AltTocBuilder(_genesis([parasha]), line_ids=[100, 101, 102, 103]).build()

        assert len(builds) == 1
        build = builds[0]
        assert build.key == "Parasha"
        assert build.he_title == "פרשה"
        summary = [(e.id, e.parent_id, e.level, e.text, e.line_index) for e in build.entries]
        assert summary == [
            (1, None, 0, "בראשית", 0),
            (2, 1, 1, "א", 0),
            (3, 1, 1, "ב", 2),
            (4, None, 0, "נח", 3),
        ]
        assert [e.line_id for e in build.entries] == [100, 100, 102, 103]
        assert build.line_to_entry == {0: 2, 1: 2, 2: 3, 3: 4}

    def test_flags(self, parasha: AltStructure) -> None:
        build = AltTocBuilder(_genesis([parasha])).build()[0]
        flags = {e.id: (e.has_children, e.is_last_child) for e in build.entries}
        assert flags == {1: (True, False), 2: (False, False), 3: (False, True), 4: (False, True)}

    def test_leaf_entries_have_no_children(self, parasha: AltStructure) -> None:
        build = AltTocBuilder(_genesis([parasha])).build()[0]
        parents = {e.parent_id for e in build.entries}
        for entry in build.entries:
            assert entry.has_children == (entry.id in parents)

    def test_talmud_books_do_not_expand_refs(self, parasha: AltStructure) -> None:
        payload = _genesis([parasha], categories=["תלמוד", "בבלי"])
        build = AltTocBuilder(payload).build()[0]
        assert [e.text for e in build.entries] == ["בראשית", "נח"]

    def test_daily_cycle_structure_does_not_expand_refs(self, parasha: AltStructure) -> None:
        cycle = parasha.model_copy(update={"key": "30 Day Cycle"})
        build = AltTocBuilder(_genesis([cycle])).build()[0]
        assert [e.text for e in build.entries] == ["בראשית", "נח"]

    def test_one_entry_per_line_within_a_parent(self) -> None:
        structure = AltStructure(
            key="Dup",
            nodes=[AltNode(he_title="x", whole_ref="Genesis 1:1", refs=["Genesis 1:1", "Genesis 1:1"])],
        )
        build = AltTocBuilder(_genesis([structure])).build()[0]
        assert [(e.parent_id, e.line_index) for e in build.entries] == [(None, 0), (1, 0)]

    def test_container_takes_first_child_anchor(self) -> None:
        structure = AltStructure(
            key="Books",
            nodes=[
                AltNode(
                    he_title="ספר ראשון",
                    children=[
                        AltNode(he_title="פרק א", whole_ref="Genesis 1"),
                        AltNode(he_title="פרק ב", whole_ref="Genesis 2"),
                    ],
                )
            ],
        )
        build = AltTocBuilder(_genesis([structure]), line_ids=[10, 11, 12, 13]).build()[0]

        summary = [(e.id, e.parent_id, e.level, e.text, e.line_index) for e in build.entries]
        assert summary == [
            (1, None, 0, "ספר ראשון", 0),
            (2, 1, 1, "פרק א", 0),
            (3, 1, 1, "פרק ב", 2),
        ]
        assert build.entries[0].line_id == 10
        assert build.line_to_entry == {0: 1, 1: 1, 2: 3, 3: 3}

    def test_unresolved_structure_is_dropped(self, parasha: AltStructure) -> None:
        empty = AltStructure(
            key="Empty",
            nodes=[AltNode(he_title="x", children=[AltNode(he_title="y", whole_ref="Exodus 5:5")])],
        )
        builds = AltTocBuilder(_genesis([empty, parasha])).build()
        assert [b.key for b in builds] == ["Parasha"]

    def test_unresolved_container_is_removed_but_siblings_stay(self) -> None:
        structure = AltStructure(
            key="Mixed",
            nodes=[
                AltNode(he_title="x", children=[AltNode(he_title="y", whole_ref="Exodus 5:5")]),
                AltNode(he_title="נח", whole_ref="Genesis 2:2"),
            ],
        )
        build = AltTocBuilder(_genesis([structure])).build()[0]

        summary = [
            (e.parent_id, e.level, e.text, e.line_index, e.has_children, e.is_last_child)
            for e in build.entries
        ]
        assert summary == [(None, 0, "נח", 3, False, True)]
        assert not {"x", "y"} & {e.text for e in build.entries}
        assert build.line_to_entry == {3: build.entries[0].id}

    def test_title_less_daf_node_lists_pages_inline(self) -> None:
        structure = AltStructure(
            key="Chapters",
            nodes=[
                AltNode(
                    address_types=["Talmud"],
                    child_label="Daf",
                    refs=["Berakhot 2a", "Berakhot 2b", "Berakhot 3a"],
                    starting_address="2a",
                )
            ],
        )
        build = AltTocBuilder(_berakhot([structure])).build()[0]
        assert [(e.parent_id, e.level, e.text, e.line_index) for e in build.entries] == [
            (None, 0, "דף ב.", 0),
            (None, 0, "דף ב:", 2),
            (None, 0, "דף ג.", 3),
        ]

    def test_daf_ref_stays_on_its_page(self) -> None:
        structure = AltStructure(
            key="Chapters",
            nodes=[
                AltNode(he_title="פרק א", address_types=["Talmud"], whole_ref="Berakhot 2a:5"),
                AltNode(he_title="פרק ב", address_types=["Talmud"], whole_ref="Berakhot 4a:1"),
            ],
        )
        build = AltTocBuilder(_berakhot([structure])).build()[0]
        assert [(e.text, e.line_index) for e in build.entries] == [("פרק א", 1)]


class TestLabels:
    def test_map_base_to_hebrew(self) -> None:
        assert map_base_to_hebrew("Chapter") == "פרק"
        assert map_base_to_hebrew("Aliyah") == "עליה"
        assert map_base_to_hebrew("Daf") == "דף"
        assert map_base_to_hebrew("Unknown") == "Unknown"
        assert map_base_to_hebrew("  ") is None

    def test_address_from_list(self) -> None:
        assert compute_address_value(AltNode(addresses=[5, 7]), 1) == 7

    def test_address_from_offset_skips(self) -> None:
        node = AltNode(offset=10, skipped_addresses=[12])
        assert compute_address_value(node, 0) == 11
        assert compute_address_value(node, 1) == 13

    def test_address_from_starting_daf(self) -> None:
        assert compute_address_value(AltNode(starting_address="2a"), 0) == 3

    def test_address_unknown(self) -> None:
        assert compute_address_value(AltNode(), 0) is None

    def test_child_label(self) -> None:
        assert build_child_label("Chapter", 0, None, None) == "פרק א"
        assert build_child_label(None, 2, None, None) == "ג"
        assert build_child_label("Daf", 0, 4, "Talmud") == "דף ב:"

    def test_node_label_prefers_hebrew_title(self) -> None:
        assert node_label(AltNode(title="Noach", he_title="נח"), 0) == "נח"
        assert node_label(AltNode(title="Noach"), 0) == "Noach"

    def test_node_label_from_address(self) -> None:
        assert node_label(AltNode(child_label="Chapter", addresses=[3]), 0) == "פרק ג"

    def test_node_label_from_position(self) -> None:
        assert node_label(AltNode(), 4) == "פרק ה"

    def test_book_alias_keys(self) -> None:
        aliases = book_alias_keys("Shulchan_Arukh", 'שו"ע')
        assert {"shulchan_arukh", "shulchan arukh", 'שו"ע', "שו״ע", "שוע"} <= aliases
