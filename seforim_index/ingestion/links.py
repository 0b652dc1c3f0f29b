"""Link-table import and directional link classification.

Link CSVs are parsed by a bounded pool of producer threads. Producers
resolve both citations of a row against the corpus index and put the
resulting ``Link`` pairs on a bounded queue; the calling thread is the only
writer and drains the queue into storage in batches. Every producer puts a
sentinel when its file is done, so the writer knows when to stop.
"""

import csv
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pydantic import BaseModel

from seforim_index.ingestion.resolver import CitationIndex
from seforim_index.models.book import BookMeta
from seforim_index.models.link import ConnectionType, Link
from seforim_index.models.payload import RefEntry
from seforim_index.storage.repository import StorageBackend
from seforim_index.text.citations import normalize_citation

logger = logging.getLogger(__name__)

CITATION_1_HEADER = "Citation 1"
CITATION_2_HEADER = "Citation 2"
# Header spelling as it appears in the Sefaria export.
CONNECTION_TYPE_HEADER = "Conection Type"

DEFAULT_BATCH_SIZE = 2000
DEFAULT_QUEUE_SIZE = 10000
DEFAULT_PARALLELISM = 8

_FILE_DONE = object()


class LinkImportStats(BaseModel):
    """Aggregate counts of one link import."""

    files_processed: int = 0
    files_failed: int = 0
    rows_read: int = 0
    citations_unresolved: int = 0
    links_written: int = 0


class _FileStats(BaseModel):
    failed: bool = False
    rows_read: int = 0
    citations_unresolved: int = 0


def classify_connection(
    base_type: ConnectionType,
    source_book_id: int,
    target_book_id: int,
    source_meta: BookMeta | None,
    target_meta: BookMeta | None,
) -> tuple[ConnectionType, ConnectionType]:
    """Derive the forward and reverse types of a link pair.

    Commentary and targum links are directional: the secondary book's
    outgoing link points at its ``SOURCE`` while the primary book's keeps
    the specific label. The secondary side is the non-base book; failing
    that, the book deeper in the category tree; failing that, the book with
    the larger id. Other types, and pairs with unknown books, keep the same
    label both ways.

    Returns:
        ``(forward, reverse)`` connection types.
    """
    if not base_type.is_directional or source_meta is None or target_meta is None:
        return base_type, base_type

    if source_meta.is_base_book != target_meta.is_base_book:
        source_is_secondary = target_meta.is_base_book
    elif source_meta.category_level != target_meta.category_level:
        source_is_secondary = source_meta.category_level > target_meta.category_level
    else:
        source_is_secondary = source_book_id > target_book_id

    if source_is_secondary:
        return ConnectionType.SOURCE, base_type
    return base_type, ConnectionType.SOURCE


class LinksImporter:
    """Imports every link CSV of an export.

    Args:
        repository: Storage backend; only used from the calling thread.
        index: Corpus-wide citation index.
        line_key_to_id: ``(book path, line index)`` -> line id.
        line_book_ids: Line id -> book id.
        book_meta: Book id -> classification metadata.
        parallelism: Maximum number of files parsed at the same time.
        batch_size: Links per storage insert.
        queue_size: Maximum number of links waiting for the writer.
    """

    def __init__(
        self,
        repository: StorageBackend,
        index: CitationIndex,
        line_key_to_id: dict[tuple[str, int], int],
        line_book_ids: dict[int, int],
        book_meta: dict[int, BookMeta],
        parallelism: int = DEFAULT_PARALLELISM,
        batch_size: int = DEFAULT_BATCH_SIZE,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._repository = repository
        self._index = index
        self._line_key_to_id = line_key_to_id
        self._line_book_ids = line_book_ids
        self._book_meta = book_meta
        self._parallelism = max(parallelism, 1)
        self._batch_size = max(batch_size, 1)
        self._queue_size = max(queue_size, 1)

    def import_links(self, links_dir: Path) -> LinkImportStats:
        """Parse, resolve and store the links of every CSV in ``links_dir``."""
        csv_files = sorted(Path(links_dir).glob("*.csv"))
        logger.info("Processing %d link files...", len(csv_files))

        stats = LinkImportStats()
        if not csv_files:
            return stats

        link_queue: queue.Queue = queue.Queue(maxsize=self._queue_size)
        stop = threading.Event()

        with ThreadPoolExecutor(max_workers=self._parallelism) as executor:
            futures = [
                executor.submit(self._produce, csv_file, link_queue, stop) for csv_file in csv_files
            ]
            writer = _BatchWriter(self._repository, self._batch_size, pending=len(csv_files))
            try:
                writer.run(link_queue)
            except BaseException:
                stop.set()
                writer.drain(link_queue)
                raise
            stats.links_written = writer.written

            for future in futures:
                file_stats = future.result()
                stats.files_processed += 1
                stats.files_failed += int(file_stats.failed)
                stats.rows_read += file_stats.rows_read
                stats.citations_unresolved += file_stats.citations_unresolved

        logger.info(
            "Links processed: %d written, %d unresolved citations, %d/%d files failed",
            stats.links_written,
            stats.citations_unresolved,
            stats.files_failed,
            stats.files_processed,
        )
        return stats

    def _produce(self, csv_file: Path, link_queue: queue.Queue, stop: threading.Event) -> _FileStats:
        stats = _FileStats()
        try:
            self._process_file(csv_file, link_queue, stop, stats)
        except Exception:
            logger.warning("Failed to read link file %s", csv_file, exc_info=True)
            stats.failed = True
        finally:
            link_queue.put(_FILE_DONE)
        return stats

    def _process_file(
        self,
        csv_file: Path,
        link_queue: queue.Queue,
        stop: threading.Event,
        stats: _FileStats,
    ) -> None:
        with open(csv_file, encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f)
            header_row = next(reader, None)
            if header_row is None:
                return
            headers = [normalize_citation(header) for header in header_row]
            try:
                idx_c1 = headers.index(CITATION_1_HEADER)
                idx_c2 = headers.index(CITATION_2_HEADER)
                idx_conn = headers.index(CONNECTION_TYPE_HEADER)
            except ValueError:
                logger.warning("Link file %s is missing required headers: %s", csv_file, headers)
                stats.failed = True
                return

            for row in reader:
                if stop.is_set():
                    return
                if not row:
                    continue
                stats.rows_read += 1
                c1 = normalize_citation(_cell(row, idx_c1))
                c2 = normalize_citation(_cell(row, idx_c2))
                if not c1 or not c2:
                    continue

                from_refs = self._index.resolve_refs(c1)
                to_refs = self._index.resolve_refs(c2)
                stats.citations_unresolved += int(not from_refs) + int(not to_refs)
                if not from_refs or not to_refs:
                    continue

                base_type = ConnectionType.from_label(_cell(row, idx_conn))
                for link in self._link_pairs(from_refs, to_refs, base_type):
                    link_queue.put(link)

    def _link_pairs(
        self, from_refs: list[RefEntry], to_refs: list[RefEntry], base_type: ConnectionType
    ) -> list[Link]:
        links: list[Link] = []
        for source in from_refs:
            source_line = self._line_key_to_id.get((source.path, source.line_index))
            if source_line is None:
                continue
            for target in to_refs:
                target_line = self._line_key_to_id.get((target.path, target.line_index))
                if target_line is None:
                    continue
                source_book = self._line_book_ids.get(source_line, 0)
                target_book = self._line_book_ids.get(target_line, 0)
                forward, reverse = classify_connection(
                    base_type,
                    source_book,
                    target_book,
                    self._book_meta.get(source_book),
                    self._book_meta.get(target_book),
                )
                links.append(
                    Link(
                        source_book_id=source_book,
                        target_book_id=target_book,
                        source_line_id=source_line,
                        target_line_id=target_line,
                        connection_type=forward,
                    )
                )
                links.append(
                    Link(
                        source_book_id=target_book,
                        target_book_id=source_book,
                        source_line_id=target_line,
                        target_line_id=source_line,
                        connection_type=reverse,
                    )
                )
        return links


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


class _BatchWriter:
    """Drains the link queue into storage until every producer is done."""

    def __init__(self, repository: StorageBackend, batch_size: int, pending: int) -> None:
        self._repository = repository
        self._batch_size = batch_size
        self._pending = pending
        self.written = 0

    def run(self, link_queue: queue.Queue) -> None:
        batch: list[Link] = []
        while self._pending:
            item = link_queue.get()
            if item is _FILE_DONE:
                self._pending -= 1
                continue
            batch.append(item)
            if len(batch) >= self._batch_size:
                self._flush(batch)
                batch = []
        if batch:
            self._flush(batch)

    def drain(self, link_queue: queue.Queue) -> None:
        """Discard queued links so blocked producers can finish."""
        while self._pending:
            if link_queue.get() is _FILE_DONE:
                self._pending -= 1

    def _flush(self, batch: list[Link]) -> None:
        self._repository.insert_links_batch(batch)
        self.written += len(batch)
