"""Tests for citation indices and the tiered resolver."""

import pytest

from seforim_index.ingestion.resolver import CitationIndex, build_corpus_index
from seforim_index.models.payload import RefEntry

BOOK_PATH = "תנ״ך/תורה/בראשית"


def _entry(ref: str, he_ref: str, line_index: int) -> RefEntry:
    return RefEntry(ref=ref, he_ref=he_ref, path=BOOK_PATH, line_index=line_index)


@pytest.fixture
def refs() -> list[RefEntry]:
    return [
        _entry("Genesis 1:1", "בראשית א, א", 0),
        _entry("Genesis 1:2", "בראשית א, ב", 1),
        _entry("Genesis 2:1", "בראשית ב, א", 2),
        _entry("Genesis 2:2", "בראשית ב, ב", 3),
    ]


@pytest.fixture
def corpus(refs: list[RefEntry]) -> CitationIndex:
    return build_corpus_index(refs)


class TestCorpusIndex:
    def test_exact_match(self, corpus: CitationIndex, refs: list[RefEntry]) -> None:
        assert corpus.resolve_refs("Genesis 1:2") == [refs[1]]

    def test_match_ignores_case_quotes_and_spacing(
        self, corpus: CitationIndex, refs: list[RefEntry]
    ) -> None:
        assert corpus.resolve_refs('"genesis   1:2"') == [refs[1]]

    def test_hebrew_citation(self, corpus: CitationIndex, refs: list[RefEntry]) -> None:
        assert corpus.resolve_refs("בראשית א, ב") == [refs[1]]

    def test_range_resolves_to_start(self, corpus: CitationIndex, refs: list[RefEntry]) -> None:
        assert corpus.resolve_refs("Genesis 1:2-2:1") == [refs[1]]

    def test_chapter_resolves_to_first_line(
        self, corpus: CitationIndex, refs: list[RefEntry]
    ) -> None:
        assert corpus.resolve_refs("Genesis 2") == [refs[2]]

    def test_unknown_verse_falls_back_to_chapter(
        self, corpus: CitationIndex, refs: list[RefEntry]
    ) -> None:
        assert corpus.resolve_refs("Genesis 1:5") == [refs[0]]

    def test_chapter_fallback_can_be_disabled(self, corpus: CitationIndex) -> None:
        assert corpus.resolve_refs("Genesis 1:5", allow_chapter_fallback=False) == []
        assert corpus.resolve_refs("Genesis 2", allow_chapter_fallback=False) == []

    def test_unknown_chapter_is_unresolved(self, corpus: CitationIndex) -> None:
        assert corpus.resolve_refs("Genesis 3:1") == []

    def test_blank_citation(self, corpus: CitationIndex) -> None:
        assert corpus.resolve_refs("  ") == []

    def test_bare_locator_is_not_indexed(self, corpus: CitationIndex) -> None:
        assert corpus.resolve_refs("1:2") == []

    def test_shared_citation_returns_every_owner(self) -> None:
        first = RefEntry(ref="Shared 1:1", he_ref="", path="a", line_index=0)
        second = RefEntry(ref="Shared 1:1", he_ref="", path="b", line_index=4)
        index = CitationIndex.build([first, second])
        assert index.resolve_refs("Shared 1:1") == [first, second]

    def test_base_map_keeps_lowest_line(self, corpus: CitationIndex, refs: list[RefEntry]) -> None:
        assert corpus.base("genesis 1") == refs[0]
        assert corpus.base("genesis 9") is None

    def test_size_and_depth(self, corpus: CitationIndex) -> None:
        assert len(corpus) == 8
        assert corpus.max_colon_depth == 1


class TestPerBookIndex:
    def test_tail_fallback_matches_other_title_forms(self, refs: list[RefEntry]) -> None:
        index = CitationIndex.build(refs, aliases=["Genesis", "בראשית"])
        assert index.resolve_refs("Bereshit 1:2") == [refs[1]]

    def test_tail_fallback_can_be_disabled(self, refs: list[RefEntry]) -> None:
        index = CitationIndex.build(refs, aliases=["Genesis", "בראשית"])
        assert index.resolve_refs("Bereshit 1:2", allow_tail_fallback=False) == []

    def test_alias_stripped_key(self, refs: list[RefEntry]) -> None:
        index = CitationIndex.build(refs, aliases=["Genesis"])
        assert index.exact("1:2") == [refs[1]]
        assert index.aliases == frozenset({"genesis"})

    def test_key_variants(self, refs: list[RefEntry]) -> None:
        index = CitationIndex.build(refs, aliases=["Genesis"])
        assert index.key_variants("genesis 1:2") == ["genesis 1:2", "1:2"]
        assert index.key_variants("genesis 1:2", allow_tail_fallback=False) == ["genesis 1:2", "1:2"]
        assert index.key_variants("other 1:2", allow_tail_fallback=False) == ["other 1:2"]
