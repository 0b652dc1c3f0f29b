"""Primary table-of-contents construction.

Entries live in an arena keyed by locally assigned ids. Pass 1 inserts
entries and records parent edges; pass 2 derives ``has_children`` and
``is_last_child`` from the finished adjacency, so no entry is revisited
after it is handed to storage.
"""

import bisect
from collections.abc import Iterable, Sequence
from typing import Protocol

from pydantic import BaseModel, Field

from seforim_index.models.payload import Heading
from seforim_index.models.toc import TocEntry


class TreeEntry(Protocol):
    id: int
    parent_id: int | None
    has_children: bool
    is_last_child: bool


class PrimaryToc(BaseModel):
    """A finished primary TOC and its line mapping."""

    entries: list[TocEntry] = Field(default_factory=list)
    line_to_entry: dict[int, int] = Field(default_factory=dict)


def finalize_tree_flags(entries: Sequence[TreeEntry]) -> None:
    """Set ``has_children`` and ``is_last_child`` from parent edges.

    Siblings are ordered by their position in ``entries``.
    """
    children_by_parent: dict[int | None, list[TreeEntry]] = {}
    for entry in entries:
        children_by_parent.setdefault(entry.parent_id, []).append(entry)

    for entry in entries:
        entry.has_children = bool(children_by_parent.get(entry.id))
        entry.is_last_child = False
    for children in children_by_parent.values():
        children[-1].is_last_child = True


def assign_lines_to_headings(anchors: dict[int, int], total_lines: int) -> dict[int, int]:
    """Map every line to the entry of the nearest preceding anchor.

    Args:
        anchors: Anchor line index -> entry id.
        total_lines: Number of lines in the book.

    Returns:
        Line index -> entry id. Lines before the first anchor are absent.
    """
    if not anchors:
        return {}
    anchor_lines = sorted(anchors)
    mapping: dict[int, int] = {}
    for line_index in range(max(total_lines, 0)):
        pos = bisect.bisect_right(anchor_lines, line_index) - 1
        if pos < 0:
            continue
        mapping[line_index] = anchors[anchor_lines[pos]]
    return mapping


def build_primary_toc(
    headings: Iterable[Heading],
    total_lines: int,
    line_ids: Sequence[int] | None = None,
    book_id: int = 0,
) -> PrimaryToc:
    """Build the heading tree of a book.

    A heading becomes the child of the closest preceding heading with a
    lower level.

    Args:
        headings: Headings emitted by the flattener.
        total_lines: Number of lines in the book.
        line_ids: Optional line index -> line id table.
        book_id: Book id stamped on every entry.

    Returns:
        The entries (flags finalized) and the line -> entry mapping.
    """
    entries: list[TocEntry] = []
    level_stack: list[tuple[int, int]] = []
    anchors: dict[int, int] = {}

    for heading in sorted(headings, key=lambda h: h.line_index):
        while level_stack and level_stack[-1][0] >= heading.level:
            level_stack.pop()
        parent_id = level_stack[-1][1] if level_stack else None

        anchored = 0 <= heading.line_index < total_lines
        entry = TocEntry(
            id=len(entries) + 1,
            book_id=book_id,
            parent_id=parent_id,
            level=heading.level,
            text=heading.title,
            line_index=heading.line_index if anchored else None,
            line_id=_line_id(line_ids, heading.line_index) if anchored else None,
        )
        entries.append(entry)
        level_stack.append((heading.level, entry.id))
        if anchored:
            anchors[heading.line_index] = entry.id

    finalize_tree_flags(entries)
    return PrimaryToc(
        entries=entries,
        line_to_entry=assign_lines_to_headings(anchors, total_lines),
    )


def _line_id(line_ids: Sequence[int] | None, line_index: int) -> int | None:
    if line_ids is None or not 0 <= line_index < len(line_ids):
        return None
    return line_ids[line_index]
