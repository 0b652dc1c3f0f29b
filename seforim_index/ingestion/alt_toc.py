"""Alternate table-of-contents construction.

Alternate structures (parashot, the chapters of a tractate, the topical
divisions of a code, ...) are defined independently of the primary schema:
each node points at text through citations. The builder resolves those
citations against the book's own lines and assembles one tree per
structure.

Resolution is stricter for daf-addressed nodes: chapter-level and bare-tail
fallbacks are disabled so an entry never drifts onto another page.
"""

import logging
import re
from collections.abc import Sequence

from pydantic import BaseModel, Field

from seforim_index.ingestion.resolver import CitationIndex
from seforim_index.ingestion.toc_builder import assign_lines_to_headings, finalize_tree_flags
from seforim_index.models.payload import AltNode, AltStructure, BookPayload, RefEntry
from seforim_index.models.toc import AltTocEntry
from seforim_index.text.citations import (
    canonical_citation,
    canonical_tail,
    normalize_title_key,
    range_start,
    sanitize_folder,
    strip_book_alias,
)
from seforim_index.text.numerals import (
    parse_leaf_index,
    to_alphabetic_numeral,
    to_leaf_notation,
)

logger = logging.getLogger(__name__)

TALMUD_ADDRESS_TYPE = "Talmud"
CHAPTER_LEVEL_ADDRESS_TYPES = ("Siman", "Perek", "Chapter", "Integer")

TALMUD_CATEGORY_MARKER = "תלמוד"
SHULCHAN_ARUKH_CATEGORY_MARKER = "שולחן ערוך"
TUR_CATEGORY_MARKER = "טור"
PSALMS_DAILY_CYCLE_KEY = "30 Day Cycle"

DAF_LABEL = "דף"
CHAPTER_LABEL = "פרק"

# Ordered: the first substring found in a section name picks the label.
HEBREW_SECTION_LABELS: list[tuple[tuple[str, ...], str]] = [
    (("aliyah",), "עליה"),
    (("daf",), "דף"),
    (("chapter",), "פרק"),
    (("perek",), "פרק"),
    (("siman",), "סימן"),
    (("section",), "סימן"),
    (("klal",), "כלל"),
    (("psalm",), "מזמור"),
    (("day",), "יום"),
]

DOTTED_NUMBER_RE = re.compile(r"\.(\d+)")


class AltTocBuild(BaseModel):
    """A finished alternate structure ready for storage."""

    key: str
    title: str | None = None
    he_title: str | None = None
    entries: list[AltTocEntry] = Field(default_factory=list)
    line_to_entry: dict[int, int] = Field(default_factory=dict)


def map_base_to_hebrew(base: str | None) -> str | None:
    """Translate a Latin section name ("Chapter", "Daf") to its Hebrew label."""
    if base is None or not base.strip():
        return None
    normalized = base.lower()
    for needles, label in HEBREW_SECTION_LABELS:
        if any(needle in normalized for needle in needles):
            return label
    return base


def compute_address_value(node: AltNode, idx: int) -> int | None:
    """Address of the ``idx``-th ref of a node.

    Uses the explicit ``addresses`` list when it covers ``idx``; otherwise
    counts forward from ``offset`` (or the parsed ``startingAddress``),
    skipping ``skipped_addresses``.
    """
    if idx < len(node.addresses):
        return node.addresses[idx]

    if node.offset is not None:
        base = node.offset
    else:
        start = parse_leaf_index(node.starting_address)
        base = start - 1 if start is not None else -1
    if base < 0:
        return None

    skip = set(node.skipped_addresses)
    current = base
    steps = idx
    while steps >= 0:
        current += 1
        if current in skip:
            continue
        steps -= 1
    return current


def build_child_label(
    base: str | None, idx: int, address_value: int | None, address_type: str | None
) -> str:
    numeric_value = max(address_value if address_value is not None else idx + 1, 1)
    if (address_type or "").lower() == TALMUD_ADDRESS_TYPE.lower():
        suffix = to_leaf_notation(numeric_value)
    else:
        suffix = to_alphabetic_numeral(numeric_value)
    label = map_base_to_hebrew(base)
    return f"{label} {suffix}" if label else suffix


def node_label(node: AltNode, position: int | None) -> str:
    if node.he_title and node.he_title.strip():
        return node.he_title
    if node.title and node.title.strip():
        return node.title

    address_type = node.address_types[0] if node.address_types else None
    is_talmud = (address_type or "").lower() == TALMUD_ADDRESS_TYPE.lower()
    address_value = compute_address_value(node, 0)
    base = map_base_to_hebrew(node.child_label) or (DAF_LABEL if is_talmud else None)

    if address_value is not None and is_talmud:
        suffix = to_leaf_notation(address_value)
    elif address_value is not None:
        suffix = to_alphabetic_numeral(address_value)
    elif position is not None:
        suffix = to_alphabetic_numeral(position + 1)
    else:
        suffix = to_alphabetic_numeral(1)
    return f"{base} {suffix}" if base else f"{CHAPTER_LABEL} {suffix}"


def book_alias_keys(en_title: str, he_title: str) -> set[str]:
    """All title forms a book's own citations may start with."""
    aliases: set[str] = set()
    for title in (en_title, he_title, sanitize_folder(en_title), sanitize_folder(he_title)):
        aliases.add(canonical_citation(title))
        normalized = normalize_title_key(title)
        if normalized is not None:
            aliases.add(canonical_citation(normalized))
    return {alias for alias in aliases if alias.strip()}


class BookLineResolver:
    """Resolves alternate-structure citations to lines of one book."""

    def __init__(self, index: CitationIndex) -> None:
        self._index = index

    def resolve(
        self,
        citation: str | None,
        is_chapter_level: bool,
        allow_chapter_fallback: bool = True,
        allow_tail_fallback: bool = True,
    ) -> RefEntry | None:
        """Resolve a citation to its earliest matching line.

        Args:
            citation: The alternate-structure citation.
            is_chapter_level: The node addresses whole chapters/simanim;
                a bare chapter ref is retried as its first verse.
            allow_chapter_fallback: Allow chapter-level fallbacks.
            allow_tail_fallback: Allow matching on the bare locator.

        Returns:
            The matched entry or None.
        """
        if citation is None or not citation.strip():
            return None

        found = self._lookup(citation, allow_chapter_fallback, allow_tail_fallback)
        if found is not None:
            return found

        if is_chapter_level:
            base = canonical_citation(citation).split("-", 1)[0].strip()
            if ":" not in base:
                return self._lookup(f"{base}:1", allow_chapter_fallback, allow_tail_fallback)
        return None

    def _lookup(
        self, raw: str, allow_chapter_fallback: bool, allow_tail_fallback: bool
    ) -> RefEntry | None:
        found = self._index.resolve_refs(
            raw,
            allow_chapter_fallback=allow_chapter_fallback,
            allow_tail_fallback=allow_tail_fallback,
        )
        if found:
            return min(found, key=lambda entry: entry.line_index)

        aliases = self._index.aliases
        canonical = canonical_citation(raw)
        candidates = [canonical, strip_book_alias(canonical, aliases)]
        if allow_tail_fallback:
            candidates.append(canonical_tail(raw))
        start = range_start(canonical)
        if start is not None:
            candidates += [start, strip_book_alias(start, aliases)]
            if allow_tail_fallback:
                candidates.append(canonical_tail(start))

        if allow_chapter_fallback:
            chapter_key = canonical.split(":", 1)[0]
            if chapter_key.strip():
                chapter_start = f"{chapter_key}:1"
                candidates += [
                    chapter_start,
                    strip_book_alias(chapter_start, aliases),
                    canonical_tail(chapter_start),
                    chapter_key,
                    strip_book_alias(chapter_key, aliases),
                ]

        for key in dict.fromkeys(candidates):
            if key.strip():
                found_entry = self._match_key(key)
                if found_entry is not None:
                    return found_entry

        return self._fallback_within_chapter(canonical)

    def _match_key(self, key: str) -> RefEntry | None:
        variants = [key]
        if "." in key:
            variants += [
                key.replace(".", " "),
                DOTTED_NUMBER_RE.sub(r":\1", key),
                DOTTED_NUMBER_RE.sub(r" \1", key),
                key.replace(".", ""),
            ]
        for variant in dict.fromkeys(v for v in variants if v.strip()):
            owners = self._index.exact(variant)
            if owners:
                return owners[0]
            for expanded in self._expanded_candidates(variant):
                owners = self._index.exact(expanded)
                if owners:
                    return owners[0]
        return None

    def _expanded_candidates(self, base: str) -> list[str]:
        # "ch 3" -> "ch 3:1", "ch 3:1:1" up to the book's deepest ref.
        max_depth = self._index.max_colon_depth
        colon_count = base.count(":")
        if not base.strip() or max_depth <= 0 or colon_count >= max_depth:
            return []
        expansions = []
        current = base
        for _ in range(max_depth - colon_count):
            current += ":1"
            expansions.append(current)
        return expansions

    def _fallback_within_chapter(self, canonical: str) -> RefEntry | None:
        # Walk back from the cited verse to the closest one that exists.
        if ":" not in canonical:
            return None
        base, _, rest = canonical.partition(":")
        digits = ""
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        if not digits:
            return None
        for n in range(int(digits), 0, -1):
            candidate = f"{base}:{n}"
            for key in dict.fromkeys((candidate, strip_book_alias(candidate, self._index.aliases))):
                if key.strip():
                    found = self._match_key(key)
                    if found is not None:
                        return found
        return None


class _StructureBuilder:
    """Builds the entry arena of a single alternate structure."""

    def __init__(
        self,
        structure: AltStructure,
        resolver: BookLineResolver,
        line_ids: Sequence[int] | None,
        expand_child_refs: bool,
    ) -> None:
        self._structure = structure
        self._resolver = resolver
        self._line_ids = line_ids
        self._expand_child_refs = expand_child_refs
        self._entries: dict[int, AltTocEntry] = {}
        self._children: dict[int | None, list[int]] = {}
        self._used_lines: dict[int | None, set[int]] = {}
        self._anchors: dict[int, int] = {}
        self._next_id = 1

    def build(self, total_lines: int) -> AltTocBuild:
        for idx, node in enumerate(self._structure.nodes):
            self._traverse(node, level=0, parent_id=None, position=idx)

        entries = list(self._entries.values())
        finalize_tree_flags(entries)
        return AltTocBuild(
            key=self._structure.key,
            title=self._structure.title,
            he_title=self._structure.he_title,
            entries=entries,
            line_to_entry=assign_lines_to_headings(self._anchors, total_lines),
        )

    def _traverse(self, node: AltNode, level: int, parent_id: int | None, position: int) -> bool:
        is_daf = node.has_address_type(TALMUD_ADDRESS_TYPE)
        # Title-less daf nodes list their pages as siblings at this level.
        inline_children_only = is_daf and bool(node.refs) and not node.has_title and not node.children
        current_parent = parent_id
        container_id: int | None = None
        inserted = False

        if not node.has_own_refs and node.children and node.has_title:
            container_id = self._create_container(node, level, parent_id, position)
            current_parent = container_id

        if inline_children_only:
            inserted = self._add_inline_children(node, level, current_parent)
        elif node.has_own_refs:
            entry_id = self._add_entry(node, level, parent_id, position)
            if entry_id is not None:
                inserted = True
                if node.children:
                    current_parent = entry_id

        child_inserted = False
        if node.children:
            child_level = level + 1 if current_parent is not None and current_parent != parent_id else level
            for idx, child in enumerate(node.children):
                if self._traverse(child, child_level, current_parent, idx):
                    child_inserted = True

        if container_id is not None:
            if self._children.get(container_id):
                if self._backfill_anchor(container_id):
                    inserted = True
            else:
                self._remove(container_id)

        return inserted or child_inserted

    def _add_entry(
        self, node: AltNode, level: int, parent_id: int | None, position: int
    ) -> int | None:
        is_chapter_level = node.has_address_type(*CHAPTER_LEVEL_ADDRESS_TYPES)
        is_daf = node.has_address_type(TALMUD_ADDRESS_TYPE)

        candidates = ([node.whole_ref] if node.whole_ref is not None else []) + node.refs
        resolved: RefEntry | None = None
        for candidate in candidates:
            resolved = self._resolver.resolve(
                candidate,
                is_chapter_level,
                allow_chapter_fallback=not is_daf,
                allow_tail_fallback=not is_daf,
            )
            if resolved is not None:
                break
        if resolved is None:
            return None
        if not self._claim_line(parent_id, resolved.line_index):
            return None

        entry_id = self._insert(parent_id, level, node_label(node, position), resolved.line_index)

        if self._expand_child_refs and node.refs:
            address_type = node.address_types[0] if node.address_types else None
            for idx, ref in enumerate(node.refs):
                child = self._resolver.resolve(
                    ref,
                    is_chapter_level,
                    allow_chapter_fallback=not is_daf,
                    allow_tail_fallback=not is_daf,
                )
                if child is None or not self._claim_line(entry_id, child.line_index):
                    continue
                label = build_child_label(
                    node.child_label, idx, compute_address_value(node, idx), address_type
                )
                self._insert(entry_id, level + 1, label, child.line_index)
        return entry_id

    def _add_inline_children(self, node: AltNode, level: int, parent_id: int | None) -> bool:
        address_type = node.address_types[0] if node.address_types else None
        inserted = False
        for idx, ref in enumerate(node.refs):
            resolved = self._resolver.resolve(
                ref,
                is_chapter_level=False,
                allow_chapter_fallback=False,
                allow_tail_fallback=False,
            )
            if resolved is None or not self._claim_line(parent_id, resolved.line_index):
                continue
            label = build_child_label(
                node.child_label, idx, compute_address_value(node, idx), address_type
            )
            self._insert(parent_id, level, label, resolved.line_index)
            inserted = True
        return inserted

    def _create_container(
        self, node: AltNode, level: int, parent_id: int | None, position: int | None
    ) -> int:
        structure = self._structure
        if node.he_title and node.he_title.strip():
            text = node.he_title
        elif position is not None:
            text = f"{CHAPTER_LABEL} {to_alphabetic_numeral(position + 1)}"
        elif node.title and node.title.strip():
            text = node.title
        elif structure.he_title and structure.he_title.strip():
            text = structure.he_title
        elif structure.title and structure.title.strip():
            text = structure.title
        else:
            text = structure.key
        return self._insert(parent_id, level, text, None)

    def _backfill_anchor(self, container_id: int) -> bool:
        container = self._entries[container_id]
        if container.line_index is not None:
            return True
        for child_id in self._children.get(container_id, []):
            child = self._entries[child_id]
            if child.line_index is not None:
                container.line_index = child.line_index
                container.line_id = child.line_id
                self._anchors[child.line_index] = container_id
                return True
        return False

    def _claim_line(self, parent_id: int | None, line_index: int) -> bool:
        used = self._used_lines.setdefault(parent_id, set())
        if line_index in used:
            return False
        used.add(line_index)
        return True

    def _insert(self, parent_id: int | None, level: int, text: str, line_index: int | None) -> int:
        entry_id = self._next_id
        self._next_id += 1
        line_id = None
        if line_index is not None and self._line_ids is not None and 0 <= line_index < len(self._line_ids):
            line_id = self._line_ids[line_index]
        self._entries[entry_id] = AltTocEntry(
            id=entry_id,
            parent_id=parent_id,
            level=level,
            text=text,
            line_id=line_id,
            line_index=line_index,
        )
        self._children.setdefault(parent_id, []).append(entry_id)
        if line_index is not None:
            self._anchors[line_index] = entry_id
        return entry_id

    def _remove(self, entry_id: int) -> None:
        entry = self._entries.pop(entry_id)
        siblings = self._children.get(entry.parent_id, [])
        if entry_id in siblings:
            siblings.remove(entry_id)
        self._children.pop(entry_id, None)


class AltTocBuilder:
    """Builds every alternate structure of one book.

    Args:
        payload: The flattened book.
        line_ids: Optional line index -> line id table used to stamp
            entries with their anchor line ids.
    """

    def __init__(self, payload: BookPayload, line_ids: Sequence[int] | None = None) -> None:
        self._payload = payload
        self._line_ids = line_ids
        categories = payload.categories
        self._suppress_child_refs = any(
            marker in category
            for category in categories
            for marker in (TALMUD_CATEGORY_MARKER, SHULCHAN_ARUKH_CATEGORY_MARKER, TUR_CATEGORY_MARKER)
        )
        aliases = book_alias_keys(payload.en_title, payload.he_title)
        self._resolver = BookLineResolver(CitationIndex.build(payload.ref_entries, aliases=aliases))

    def build(self) -> list[AltTocBuild]:
        """Build all structures; structures with no resolved entry are dropped."""
        total_lines = len(self._payload.lines)
        builds: list[AltTocBuild] = []
        for structure in self._payload.alt_structures:
            expand = not self._suppress_child_refs and structure.key != PSALMS_DAILY_CYCLE_KEY
            build = _StructureBuilder(structure, self._resolver, self._line_ids, expand).build(total_lines)
            if not build.entries:
                logger.debug(
                    "Alt structure %r of %s resolved no entries", structure.key, self._payload.en_title
                )
                continue
            builds.append(build)
        return builds
