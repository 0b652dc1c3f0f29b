"""Export ingestion: reading, flattening, TOC construction and link import."""

from seforim_index.ingestion.alt_toc import AltTocBuilder
from seforim_index.ingestion.flattener import SchemaFlattener, flatten_book
from seforim_index.ingestion.importer import ImportReport, SefariaImporter
from seforim_index.ingestion.links import LinksImporter, classify_connection
from seforim_index.ingestion.payload_reader import BookPayloadReader
from seforim_index.ingestion.resolver import CitationIndex, build_corpus_index
from seforim_index.ingestion.toc_builder import build_primary_toc

__all__ = [
    "AltTocBuilder",
    "BookPayloadReader",
    "CitationIndex",
    "ImportReport",
    "LinksImporter",
    "SchemaFlattener",
    "SefariaImporter",
    "build_corpus_index",
    "build_primary_toc",
    "classify_connection",
    "flatten_book",
]
