"""Orchestration of one import run over a Sefaria ``database_export``.

Books are read and flattened in parallel, then placed one at a time by the
calling thread: categories, book row, lines, primary TOC and alternate
TOCs. Once every book is stored, the default commentator and targum
mappings are applied, then the corpus-wide citation index is built and the
link tables are imported against it.

Line and book ids are assigned by the importer so that TOC anchors and
links can reference lines before their batch is written; the target
database is expected to be freshly initialized.
"""

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import BaseModel

from seforim_index.config import ImportConfig
from seforim_index.ingestion.alt_toc import AltTocBuild, AltTocBuilder
from seforim_index.ingestion.default_mappings import (
    COMMENTATORS_KEY,
    TARGUMIM_KEY,
    load_default_mapping,
    resolve_default_mapping,
)
from seforim_index.ingestion.export_layout import (
    JSON_DIR_NAME,
    LINKS_DIR_NAME,
    SCHEMAS_DIR_NAME,
    find_database_export_root,
)
from seforim_index.ingestion.links import LinksImporter
from seforim_index.ingestion.ordering import (
    CatalogOrders,
    apply_priority_ordering,
    build_book_path,
    load_priority_list,
    normalized_book_path,
    parse_table_of_contents_orders,
)
from seforim_index.ingestion.payload_reader import BookPayloadReader
from seforim_index.ingestion.resolver import build_corpus_index
from seforim_index.ingestion.toc_builder import build_primary_toc
from seforim_index.models.book import Book, BookMeta, Category, Line
from seforim_index.models.payload import BookPayload, RefEntry
from seforim_index.models.toc import AltTocStructure
from seforim_index.storage.repository import StorageBackend
from seforim_index.text.citations import normalize_title_key

logger = logging.getLogger(__name__)

DEFAULT_ORDER = 999
PROGRESS_LOG_INTERVAL = 100


class ImportReport(BaseModel):
    """Aggregate counts of one import run."""

    books_imported: int = 0
    books_skipped: int = 0
    duplicate_titles: int = 0
    lines_written: int = 0
    links_written: int = 0
    citations_unresolved: int = 0
    link_files_failed: int = 0
    priority_entries_missing: int = 0
    default_commentator_rows: int = 0
    default_targum_rows: int = 0


class SefariaImporter:
    """Imports a Sefaria export into a storage backend.

    Args:
        export_root: Directory holding (or containing) ``database_export``.
        repository: Storage backend, used from the calling thread only.
        config: Pipeline tuning; defaults apply when omitted.
        priority_file: Optional base-book priority list.
        default_commentators_file: Optional default-commentators mapping.
        default_targumim_file: Optional default-targumim mapping.
    """

    def __init__(
        self,
        export_root: str | Path,
        repository: StorageBackend,
        config: ImportConfig | None = None,
        priority_file: str | Path | None = None,
        default_commentators_file: str | Path | None = None,
        default_targumim_file: str | Path | None = None,
    ) -> None:
        self._export_root = Path(export_root)
        self._repository = repository
        self._config = config or ImportConfig()
        self._priority_file = priority_file
        self._default_commentators_file = default_commentators_file
        self._default_targumim_file = default_targumim_file

        self._next_book_id = 1
        self._next_line_id = 1
        self._category_ids: dict[str, int] = {}
        self._category_levels: dict[int, int] = {}
        self._title_to_book_id: dict[str, int] = {}
        self._line_key_to_id: dict[tuple[str, int], int] = {}
        self._line_book_ids: dict[int, int] = {}
        self._book_meta: dict[int, BookMeta] = {}
        self._all_refs: list[RefEntry] = []
        self._line_batch: list[Line] = []
        self._line_toc_batch: list[tuple[int, int]] = []

    def run(self) -> ImportReport:
        """Run a full import.

        Returns:
            Counts of imported and skipped books, links and failures.

        Raises:
            FileNotFoundError: If the export root or its json/schemas
                directories cannot be found.
        """
        db_root = find_database_export_root(self._export_root)
        json_dir = db_root / JSON_DIR_NAME
        schema_dir = db_root / SCHEMAS_DIR_NAME
        logger.info("Importing Sefaria export from %s", db_root)

        orders = parse_table_of_contents_orders(db_root)

        reader = BookPayloadReader(parallelism=self._config.file_parallelism)
        schema_lookup = reader.build_schema_lookup(schema_dir)
        read_result = reader.read_books(json_dir, schema_dir, schema_lookup)

        priority_entries = load_priority_list(self._priority_file)
        payloads, missing = apply_priority_ordering(read_result.payloads, priority_entries)
        if priority_entries:
            logger.info(
                "Applied priority ordering for %d/%d entries",
                len(priority_entries) - len(missing),
                len(priority_entries),
            )
            if missing:
                logger.warning("Priority entries not found in export (first 5): %s", missing[:5])

        report = ImportReport(
            books_skipped=len(read_result.skipped),
            priority_entries_missing=len(missing),
        )
        base_book_keys = set(priority_entries)

        with self._repository.transaction():
            logger.info("Inserting books and lines...")
            for payload in payloads:
                self._import_book(payload, orders, base_book_keys, report)
                processed = report.books_imported + report.duplicate_titles
                if processed and processed % PROGRESS_LOG_INTERVAL == 0:
                    logger.info("Processed %d/%d books", processed, len(payloads))

            self._flush_lines()
            self._flush_line_toc()
            logger.info("Inserted %d books and %d lines", report.books_imported, report.lines_written)

            report.default_commentator_rows = self._apply_default_mapping(
                self._default_commentators_file,
                COMMENTATORS_KEY,
                self._repository.set_default_commentators,
            )
            report.default_targum_rows = self._apply_default_mapping(
                self._default_targumim_file,
                TARGUMIM_KEY,
                self._repository.set_default_targumim,
            )

            links_dir = db_root / LINKS_DIR_NAME
            if links_dir.is_dir():
                index = build_corpus_index(self._all_refs)
                links_importer = LinksImporter(
                    repository=self._repository,
                    index=index,
                    line_key_to_id=self._line_key_to_id,
                    line_book_ids=self._line_book_ids,
                    book_meta=self._book_meta,
                    parallelism=self._config.file_parallelism,
                    batch_size=self._config.link_batch_size,
                    queue_size=self._config.link_queue_size,
                )
                link_stats = links_importer.import_links(links_dir)
                report.links_written = link_stats.links_written
                report.citations_unresolved = link_stats.citations_unresolved
                report.link_files_failed = link_stats.files_failed
            else:
                logger.warning("No links directory under %s", db_root)

            self._repository.update_book_link_flags()

        logger.info(
            "Import completed: %d books imported, %d skipped, %d duplicate titles, "
            "%d links written, %d citations unresolved, %d link files failed",
            report.books_imported,
            report.books_skipped,
            report.duplicate_titles,
            report.links_written,
            report.citations_unresolved,
            report.link_files_failed,
        )
        return report

    def _import_book(
        self,
        payload: BookPayload,
        orders: CatalogOrders,
        base_book_keys: set[str],
        report: ImportReport,
    ) -> None:
        if self._repository.find_book_by_title(payload.he_title) is not None:
            logger.warning("Skipping duplicate title %s (%s)", payload.he_title, payload.en_title)
            report.duplicate_titles += 1
            return
        if not payload.categories:
            logger.warning("Skipping %s: no category path", payload.en_title)
            report.books_skipped += 1
            return

        category_id = self._ensure_category_path(payload.categories, orders)
        category_level = self._category_levels[category_id]
        book_path = build_book_path(payload.categories, payload.he_title)
        is_base_book = normalized_book_path(payload.categories, payload.he_title) in base_book_keys
        order = orders.books.get(payload.en_title, orders.books.get(payload.he_title, DEFAULT_ORDER))

        book_id = self._repository.insert_book(
            Book(
                id=self._next_book_id,
                category_id=category_id,
                he_title=payload.he_title,
                en_title=payload.en_title,
                categories=payload.categories,
                category_level=category_level,
                order=float(order),
                authors=payload.authors,
                description=payload.description,
                pub_dates=payload.pub_dates,
                is_base_book=is_base_book,
                total_lines=len(payload.lines),
            )
        )
        self._next_book_id = book_id + 1
        self._book_meta[book_id] = BookMeta(is_base_book=is_base_book, category_level=category_level)
        for title in (payload.he_title, payload.en_title):
            title_key = normalize_title_key(title)
            if title_key is not None:
                self._title_to_book_id.setdefault(title_key, book_id)

        line_ids = self._add_lines(payload, book_id, book_path)
        report.lines_written += len(line_ids)
        self._all_refs.extend(
            entry.model_copy(update={"path": book_path}) for entry in payload.ref_entries
        )

        if payload.headings:
            self._flush_lines()
            self._store_primary_toc(payload, book_id, line_ids)

        alt_builds = AltTocBuilder(payload, line_ids).build()
        if alt_builds:
            self._flush_lines()
            for build in alt_builds:
                self._store_alt_toc(build, book_id, line_ids)
        self._repository.update_book_alt_structures(book_id, bool(alt_builds))

        report.books_imported += 1

    def _apply_default_mapping(
        self,
        path: str | Path | None,
        list_key: str,
        store: Callable[[int, Sequence[int]], None],
    ) -> int:
        mapping = load_default_mapping(path, list_key)
        if not mapping:
            return 0
        rows = 0
        for base_id, book_ids in resolve_default_mapping(mapping, self._title_to_book_id).items():
            store(base_id, book_ids)
            rows += len(book_ids)
        logger.info("Inserted %d default %s rows", rows, list_key)
        return rows

    def _ensure_category_path(self, parts: list[str], orders: CatalogOrders) -> int:
        parent_id: int | None = None
        path: list[str] = []
        for level, part in enumerate(parts):
            path.append(part)
            key = "/".join(path)
            existing = self._category_ids.get(key)
            if existing is not None:
                parent_id = existing
                continue
            order = orders.categories.get(key, orders.categories.get(part, DEFAULT_ORDER))
            category_id = self._repository.insert_category(
                Category(parent_id=parent_id, title=part, level=level, order=order)
            )
            self._category_ids[key] = category_id
            self._category_levels[category_id] = level
            parent_id = category_id
        if parent_id is None:
            raise ValueError(f"No category created for {parts}")
        return parent_id

    def _add_lines(self, payload: BookPayload, book_id: int, book_path: str) -> list[int]:
        refs_by_line = {entry.line_index: entry for entry in payload.ref_entries}
        line_ids: list[int] = []
        for idx, content in enumerate(payload.lines):
            line_id = self._next_line_id
            self._next_line_id += 1
            ref_entry = refs_by_line.get(idx)
            self._line_batch.append(
                Line(
                    id=line_id,
                    book_id=book_id,
                    line_index=idx,
                    content=content,
                    ref=ref_entry.ref if ref_entry else None,
                    he_ref=ref_entry.he_ref if ref_entry else None,
                )
            )
            self._line_key_to_id[(book_path, idx)] = line_id
            self._line_book_ids[line_id] = book_id
            line_ids.append(line_id)
            if len(self._line_batch) >= self._config.line_batch_size:
                self._flush_lines()
        return line_ids

    def _store_primary_toc(self, payload: BookPayload, book_id: int, line_ids: list[int]) -> None:
        toc = build_primary_toc(payload.headings, len(payload.lines), line_ids, book_id)
        row_ids: dict[int, int] = {}
        for entry in toc.entries:
            row_ids[entry.id] = self._repository.insert_toc_entry(
                entry.model_copy(update={"parent_id": row_ids.get(entry.parent_id)})
            )
        for line_index, entry_id in toc.line_to_entry.items():
            self._line_toc_batch.append((line_ids[line_index], row_ids[entry_id]))
        if len(self._line_toc_batch) >= self._config.line_batch_size:
            self._flush_line_toc()

    def _store_alt_toc(self, build: AltTocBuild, book_id: int, line_ids: list[int]) -> None:
        structure_id = self._repository.insert_alt_toc_structure(
            AltTocStructure(book_id=book_id, key=build.key, title=build.title, he_title=build.he_title)
        )
        row_ids: dict[int, int] = {}
        for entry in build.entries:
            row_ids[entry.id] = self._repository.insert_alt_toc_entry(
                entry.model_copy(
                    update={"structure_id": structure_id, "parent_id": row_ids.get(entry.parent_id)}
                )
            )
        self._repository.insert_line_alt_toc_batch(
            [
                (line_ids[line_index], structure_id, row_ids[entry_id])
                for line_index, entry_id in build.line_to_entry.items()
            ]
        )

    def _flush_lines(self) -> None:
        if self._line_batch:
            self._repository.insert_lines_batch(self._line_batch)
            self._line_batch = []

    def _flush_line_toc(self) -> None:
        if self._line_toc_batch:
            self._repository.insert_line_toc_batch(self._line_toc_batch)
            self._line_toc_batch = []
