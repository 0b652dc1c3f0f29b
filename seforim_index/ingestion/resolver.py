"""Citation indices and the tiered citation resolver.

Two maps are built once from ``RefEntry`` records:

- exact: ``canonical_citation(ref or he_ref)`` -> owning entries, in the
  order they were indexed
- base: ``canonical_base(ref or he_ref)`` -> the entry with the lowest line
  index

The corpus-wide index keys only full citations. A per-book index is built
with the book's title aliases and additionally keys each citation without
its title and by its bare locator, so that alternate-structure refs written
with a different title form still resolve.
"""

import logging
from collections.abc import Iterable

from seforim_index.models.payload import RefEntry
from seforim_index.text.citations import (
    canonical_base,
    canonical_citation,
    canonical_tail,
    range_start,
    strip_book_alias,
)

logger = logging.getLogger(__name__)


class CitationIndex:
    """Immutable exact/base lookup tables over a set of ref entries.

    Build with :meth:`build`; instances are never mutated afterwards and can
    be shared read-only between worker threads.
    """

    def __init__(
        self,
        exact: dict[str, list[RefEntry]],
        base: dict[str, RefEntry],
        aliases: frozenset[str] = frozenset(),
    ) -> None:
        self._exact = exact
        self._base = base
        self._aliases = aliases
        self._max_colon_depth = max((key.count(":") for key in exact), default=0)

    @classmethod
    def build(
        cls, refs: Iterable[RefEntry], aliases: Iterable[str] | None = None
    ) -> "CitationIndex":
        """Build an index.

        Args:
            refs: Ref entries, in line order per book.
            aliases: Book title forms. When given, the index is a per-book
                index and also keys alias-stripped and tail forms.

        Returns:
            The populated index.
        """
        alias_keys = frozenset(
            key for key in (canonical_citation(alias) for alias in aliases or []) if key
        )
        per_book = aliases is not None

        exact: dict[str, list[RefEntry]] = {}
        base: dict[str, RefEntry] = {}

        def add_base(key: str, entry: RefEntry) -> None:
            if not key:
                return
            current = base.get(key)
            if current is None or entry.line_index < current.line_index:
                base[key] = entry

        for entry in refs:
            for value in dict.fromkeys((entry.ref, entry.he_ref)):
                if not value:
                    continue
                canonical = canonical_citation(value)
                keys = [canonical]
                if per_book:
                    keys.append(strip_book_alias(canonical, alias_keys))
                    keys.append(canonical_tail(value))
                for key in dict.fromkeys(keys):
                    if not key:
                        continue
                    owners = exact.setdefault(key, [])
                    if entry not in owners:
                        owners.append(entry)
                    add_base(canonical_base(key), entry)

        return cls(exact=exact, base=base, aliases=alias_keys)

    @property
    def aliases(self) -> frozenset[str]:
        return self._aliases

    @property
    def max_colon_depth(self) -> int:
        """Deepest ``:`` nesting among indexed keys."""
        return self._max_colon_depth

    def __len__(self) -> int:
        return len(self._exact)

    def exact(self, key: str) -> list[RefEntry]:
        return self._exact.get(key, [])

    def base(self, key: str) -> RefEntry | None:
        return self._base.get(key)

    def key_variants(self, key: str, allow_tail_fallback: bool = True) -> list[str]:
        """The key itself, its alias-stripped form and (optionally) its tail."""
        variants = [key, strip_book_alias(key, self._aliases)]
        if allow_tail_fallback:
            variants.append(canonical_tail(key))
        return [variant for variant in dict.fromkeys(variants) if variant.strip()]

    def resolve_refs(
        self,
        citation: str,
        allow_chapter_fallback: bool = True,
        allow_tail_fallback: bool = True,
    ) -> list[RefEntry]:
        """Resolve a free-form citation to the entries it points at.

        Tiers, first non-empty result wins:

        1. exact match
        2. for ranges, the range start (exact, then chapter level)
        3. for ``chapter:verse``-less single-colon refs, the first verse
        4. the chapter/page level of the citation

        Args:
            citation: The citation to resolve.
            allow_chapter_fallback: Allow chapter-level (base map) and
                first-verse tiers. Disabled for daf-addressed lookups so a
                ref never drifts to another page.
            allow_tail_fallback: Also try the bare locator of each key.

        Returns:
            Matching entries, or an empty list when unresolved.
        """
        canonical = canonical_citation(citation)
        if not canonical:
            return []

        found = self._lookup_exact(canonical, allow_tail_fallback)
        if found:
            return found

        start = range_start(canonical)
        if "-" in canonical and start is not None:
            found = self._lookup_exact(start, allow_tail_fallback)
            if found:
                return found
            if allow_chapter_fallback:
                found = self._lookup_base(canonical_base(start), allow_tail_fallback)
                if found:
                    return found
                if ":" not in start:
                    found = self._lookup_base(canonical_base(f"{start} 1"), allow_tail_fallback)
                    if found:
                        return found

        if not allow_chapter_fallback:
            return []

        if canonical.count(":") == 1:
            with_first = f"{canonical}:1"
            found = self._lookup_exact(with_first, allow_tail_fallback)
            if found:
                return found
            found = self._lookup_base(canonical_base(with_first), allow_tail_fallback)
            if found:
                return found

        found = self._lookup_base(canonical_base(canonical), allow_tail_fallback)
        if found:
            return found
        if ":" not in canonical:
            found = self._lookup_base(canonical_base(f"{canonical} 1"), allow_tail_fallback)
            if found:
                return found

        return []

    def _lookup_exact(self, key: str, allow_tail_fallback: bool) -> list[RefEntry]:
        for variant in self.key_variants(key, allow_tail_fallback):
            owners = self._exact.get(variant)
            if owners:
                return list(owners)
        return []

    def _lookup_base(self, key: str, allow_tail_fallback: bool) -> list[RefEntry]:
        for variant in self.key_variants(key, allow_tail_fallback):
            entry = self._base.get(variant)
            if entry is not None:
                return [entry]
        return []


def build_corpus_index(refs: Iterable[RefEntry]) -> CitationIndex:
    """Build the corpus-wide index used for link resolution."""
    index = CitationIndex.build(refs)
    logger.info("Built citation index with %d keys", len(index))
    return index
