"""Data models for the Sefaria export importer."""

from seforim_index.models.book import Book, BookMeta, Category, Line
from seforim_index.models.link import ConnectionType, Link
from seforim_index.models.payload import (
    AltNode,
    AltStructure,
    BookPayload,
    Heading,
    RefEntry,
)
from seforim_index.models.schema import (
    ContainerNode,
    LeafNode,
    SchemaNode,
    TextKeyed,
    TextSeq,
    TextStr,
    TextValue,
)
from seforim_index.models.toc import AltTocEntry, AltTocStructure, TocEntry

__all__ = [
    "AltNode",
    "AltStructure",
    "AltTocEntry",
    "AltTocStructure",
    "Book",
    "BookMeta",
    "BookPayload",
    "Category",
    "ConnectionType",
    "ContainerNode",
    "Heading",
    "LeafNode",
    "Line",
    "Link",
    "RefEntry",
    "SchemaNode",
    "TextKeyed",
    "TextSeq",
    "TextStr",
    "TextValue",
    "TocEntry",
]
