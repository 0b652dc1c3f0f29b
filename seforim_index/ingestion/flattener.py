"""Flattens a book's schema tree and text payload into addressable lines.

A single depth-first walk produces, in output order:

- the line contents
- a ``RefEntry`` per line, carrying its Latin and Hebrew citations
- the headings of the primary table of contents
"""

import logging

from pydantic import BaseModel, Field

from seforim_index.models.payload import Heading, RefEntry
from seforim_index.models.schema import (
    ContainerNode,
    LeafNode,
    SchemaNode,
    TextKeyed,
    TextSeq,
    TextStr,
    TextValue,
    is_trivially_empty,
)
from seforim_index.text.citations import trim_trailing_separators
from seforim_index.text.numerals import (
    to_alphabetic_numeral,
    to_ascii_leaf_notation,
    to_leaf_notation,
)

logger = logging.getLogger(__name__)

TALMUD_ADDRESS_TYPE = "Talmud"
INTEGER_ADDRESS_TYPE = "Integer"

TITLE_SEPARATOR = ", "
REF_LEVEL_SEPARATOR = ":"
HE_REF_LEVEL_SEPARATOR = ", "


class FlattenedBook(BaseModel):
    """Output of one flattening pass."""

    lines: list[str] = Field(default_factory=list)
    ref_entries: list[RefEntry] = Field(default_factory=list)
    headings: list[Heading] = Field(default_factory=list)


class SchemaFlattener:
    """Walks a schema tree paired with its text and emits lines.

    Line indices are assigned in traversal order and are dense: skipped
    (trivially empty) text never consumes an index.

    Args:
        en_title: Latin-script book title, the root of every ``ref``.
        he_title: Hebrew book title, the root of every ``he_ref``.
    """

    def __init__(self, en_title: str, he_title: str) -> None:
        self._en_title = en_title
        self._he_title = he_title
        self._lines: list[str] = []
        self._refs: list[RefEntry] = []
        self._headings: list[Heading] = []

    def flatten(self, schema: SchemaNode, text: TextValue | None) -> FlattenedBook:
        """Flatten a book.

        Args:
            schema: The root schema node.
            text: The root text value mirroring the schema.

        Returns:
            The lines, ref entries and headings of the book.
        """
        self._lines = []
        self._refs = []
        self._headings = []

        if isinstance(schema, ContainerNode):
            for child in schema.children:
                self._process_node(
                    node=child,
                    text=select_node_text(child, text),
                    level=1,
                    ref_prefix=_extend_title_prefix(
                        f"{self._en_title}{TITLE_SEPARATOR}", child, child.title
                    ),
                    he_ref_prefix=_extend_title_prefix(
                        f"{self._he_title}{TITLE_SEPARATOR}", child, child.he_title
                    ),
                )
        else:
            self._recurse_sections(
                leaf=schema,
                text=text,
                depth=schema.depth,
                level=1,
                ref_prefix=f"{self._en_title} ",
                he_ref_prefix=f"{self._he_title} ",
            )

        return FlattenedBook(
            lines=self._lines,
            ref_entries=self._refs,
            headings=self._headings,
        )

    def _process_node(
        self,
        node: SchemaNode,
        text: TextValue | None,
        level: int,
        ref_prefix: str,
        he_ref_prefix: str,
    ) -> None:
        title = node.display_title
        if title is not None and level > 0:
            self._add_heading(title, level)

        if text is None:
            return

        if isinstance(node, ContainerNode):
            for child in node.children:
                self._process_node(
                    node=child,
                    text=select_node_text(child, text),
                    level=level + 1,
                    ref_prefix=_extend_title_prefix(ref_prefix, child, child.title),
                    he_ref_prefix=_extend_title_prefix(he_ref_prefix, child, child.he_title),
                )
            return

        self._recurse_sections(
            leaf=node,
            text=text,
            depth=node.depth,
            level=level + 1 if title is not None else level,
            ref_prefix=_open_leaf_prefix(ref_prefix),
            he_ref_prefix=_open_leaf_prefix(he_ref_prefix),
        )

    def _recurse_sections(
        self,
        leaf: LeafNode,
        text: TextValue | None,
        depth: int,
        level: int,
        ref_prefix: str,
        he_ref_prefix: str,
        line_prefix: str = "",
    ) -> None:
        if depth <= 0:
            if isinstance(text, TextStr) and text.value.strip():
                self._lines.append(line_prefix + text.value.replace("\n", ""))
                self._refs.append(
                    RefEntry(
                        ref=trim_trailing_separators(ref_prefix),
                        he_ref=trim_trailing_separators(he_ref_prefix),
                        line_index=len(self._lines) - 1,
                    )
                )
            return

        if not isinstance(text, TextSeq):
            return

        section_index = len(leaf.section_names) - depth
        section_name = _item_or_none(leaf.section_names, max(section_index, 0)) or ""
        address_type = _item_or_none(leaf.address_types, len(leaf.address_types) - depth)
        is_referenceable = _item_or_none(leaf.referenceable_sections, section_index)
        if is_referenceable is None:
            is_referenceable = True

        non_empty_count = 0
        if depth == 1:
            non_empty_count = sum(1 for item in text.items if not is_trivially_empty(item))

        for idx, item in enumerate(text.items):
            if is_trivially_empty(item):
                continue

            is_talmud = address_type == TALMUD_ADDRESS_TYPE
            label = to_leaf_notation(idx + 1) if is_talmud else to_alphabetic_numeral(idx + 1)

            # Inline "(א) " markers only when a section has several segments.
            # Sefaria "Integer" segments are bare numbers with no printed marker.
            next_line_prefix = ""
            if (
                depth == 1
                and is_referenceable
                and address_type != INTEGER_ADDRESS_TYPE
                and non_empty_count > 1
            ):
                next_line_prefix = f"({label}) "

            if depth > 1 and section_name.strip() and is_referenceable:
                self._add_heading(f"{section_name} {label}", level)

            ref_number = to_ascii_leaf_notation(idx + 1) if is_talmud else str(idx + 1)
            self._recurse_sections(
                leaf=leaf,
                text=item,
                depth=depth - 1,
                level=level + 1,
                ref_prefix=f"{ref_prefix}{ref_number}{REF_LEVEL_SEPARATOR}",
                he_ref_prefix=f"{he_ref_prefix}{label}{HE_REF_LEVEL_SEPARATOR}",
                line_prefix=next_line_prefix,
            )

    def _add_heading(self, title: str, level: int) -> None:
        self._headings.append(Heading(title=title, level=level, line_index=len(self._lines)))


def select_node_text(node: SchemaNode, text: TextValue | None) -> TextValue | None:
    """Pick the text matching a container child.

    Titled children are looked up by title; the ``default`` child (or an
    untitled one) reads the anonymous ``""`` slot, falling back to its title.
    """
    if not isinstance(text, TextKeyed):
        return None
    title = node.title or ""
    if not node.is_default and title.strip():
        return text.entries.get(title)
    anonymous = text.entries.get("")
    if anonymous is not None:
        return anonymous
    return text.entries.get(title)


def _extend_title_prefix(prefix: str, node: SchemaNode, title: str | None) -> str:
    if node.is_default or not title or not title.strip():
        return prefix
    return f"{prefix}{title}{TITLE_SEPARATOR}"


def _open_leaf_prefix(prefix: str) -> str:
    # "Tur, Orach Chaim, " -> "Tur, Orach Chaim " so refs read "... 1:1".
    return prefix.rstrip(TITLE_SEPARATOR) + " "


def _item_or_none(values: list, index: int):
    if 0 <= index < len(values):
        return values[index]
    return None


def flatten_book(
    schema: SchemaNode, text: TextValue | None, en_title: str, he_title: str
) -> FlattenedBook:
    """Convenience wrapper around :class:`SchemaFlattener`."""
    result = SchemaFlattener(en_title=en_title, he_title=he_title).flatten(schema, text)
    logger.debug(
        "Flattened %s: %d lines, %d headings",
        en_title,
        len(result.lines),
        len(result.headings),
    )
    return result
