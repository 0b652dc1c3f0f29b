"""Book, category and line data models."""

from pydantic import BaseModel, Field


class Category(BaseModel):
    """A node of the category hierarchy (e.g. תנ"ך > תורה)."""

    id: int = 0
    parent_id: int | None = None
    title: str
    level: int = 0
    order: int = 999


class Book(BaseModel):
    """Represents an imported book."""

    id: int = 0
    category_id: int
    he_title: str
    en_title: str = ""
    categories: list[str] = Field(default_factory=list)
    category_level: int = 0
    order: float = 999.0
    authors: list[str] = Field(default_factory=list)
    description: str | None = None
    pub_dates: list[str] = Field(default_factory=list)
    is_base_book: bool = False
    total_lines: int = 0
    has_alt_structures: bool = False


class Line(BaseModel):
    """A single addressable line of a book."""

    id: int = 0
    book_id: int
    line_index: int
    content: str
    ref: str | None = None
    he_ref: str | None = None


class BookMeta(BaseModel):
    """The slice of a book the link classifier needs."""

    is_base_book: bool
    category_level: int
