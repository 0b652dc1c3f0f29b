"""Primary and alternate table-of-contents models."""

from pydantic import BaseModel


class TocEntry(BaseModel):
    """A node of a book's primary table of contents.

    ``id`` and ``parent_id`` are arena ids local to one build; storage maps
    them to row ids on insert.
    """

    id: int
    book_id: int = 0
    parent_id: int | None = None
    level: int
    text: str
    line_id: int | None = None
    line_index: int | None = None
    has_children: bool = False
    is_last_child: bool = False


class AltTocStructure(BaseModel):
    """A named alternate TOC of a book."""

    id: int = 0
    book_id: int
    key: str
    title: str | None = None
    he_title: str | None = None


class AltTocEntry(BaseModel):
    """A node of an alternate TOC, shaped like ``TocEntry``."""

    id: int
    structure_id: int = 0
    parent_id: int | None = None
    level: int
    text: str
    line_id: int | None = None
    line_index: int | None = None
    has_children: bool = False
    is_last_child: bool = False
