"""Per-book payload produced by the reader and flattener workers."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RefEntry(BaseModel):
    """The citations of one citable line.

    ``ref`` is the Latin-script citation ("Genesis 1:1"), ``he_ref`` the
    Hebrew one ("בראשית א, א"). ``path`` identifies the book
    (category path + title) and is empty until the book is placed.
    """

    ref: str
    he_ref: str
    path: str = ""
    line_index: int


class Heading(BaseModel):
    """A primary TOC heading anchored before ``line_index``."""

    title: str
    level: int
    line_index: int


class AltNode(BaseModel):
    """A node of an alternate structure (e.g. parashot, chapters of a tractate)."""

    title: str | None = None
    he_title: str | None = None
    whole_ref: str | None = None
    refs: list[str] = Field(default_factory=list)
    address_types: list[str] = Field(default_factory=list)
    child_label: str | None = None
    addresses: list[int] = Field(default_factory=list)
    skipped_addresses: list[int] = Field(default_factory=list)
    starting_address: str | None = None
    offset: int | None = None
    children: list[AltNode] = Field(default_factory=list)

    @property
    def has_title(self) -> bool:
        return bool((self.he_title or "").strip() or (self.title or "").strip())

    @property
    def has_own_refs(self) -> bool:
        return self.whole_ref is not None or bool(self.refs)

    def has_address_type(self, *names: str) -> bool:
        wanted = {name.lower() for name in names}
        return any(address_type.lower() in wanted for address_type in self.address_types)


AltNode.model_rebuild()


class AltStructure(BaseModel):
    """A named alternate structure of a book."""

    key: str
    title: str | None = None
    he_title: str | None = None
    nodes: list[AltNode] = Field(default_factory=list)


class BookPayload(BaseModel):
    """Everything one worker extracts from a single book's files."""

    he_title: str
    en_title: str
    categories: list[str] = Field(default_factory=list)
    lines: list[str] = Field(default_factory=list)
    ref_entries: list[RefEntry] = Field(default_factory=list)
    headings: list[Heading] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list)
    description: str | None = None
    pub_dates: list[str] = Field(default_factory=list)
    alt_structures: list[AltStructure] = Field(default_factory=list)
