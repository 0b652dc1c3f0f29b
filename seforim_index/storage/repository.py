"""Storage backend used by the importer, with its SQLite implementation."""

import json
import logging
from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Protocol

from seforim_index.models.book import Book, Category, Line
from seforim_index.models.link import ConnectionType, Link
from seforim_index.models.toc import AltTocEntry, AltTocStructure, TocEntry
from seforim_index.storage.database import get_connection
from seforim_index.text.citations import normalize_title_key

logger = logging.getLogger(__name__)

# connection type -> book flag column set when a book takes part in such a link
CONNECTION_FLAG_COLUMNS: dict[ConnectionType, str] = {
    ConnectionType.TARGUM: "has_targum_connection",
    ConnectionType.REFERENCE: "has_reference_connection",
    ConnectionType.SOURCE: "has_source_connection",
    ConnectionType.COMMENTARY: "has_commentary_connection",
    ConnectionType.OTHER: "has_other_connection",
}


class StorageBackend(Protocol):
    """Operations the importer needs from storage.

    All calls of one import run happen inside a single ``transaction()``.
    Tree entries arrive with final ``has_children``/``is_last_child`` flags.
    """

    def transaction(self) -> AbstractContextManager[None]: ...

    def insert_category(self, category: Category) -> int: ...

    def insert_book(self, book: Book) -> int: ...

    def update_book_alt_structures(self, book_id: int, has_alt_structures: bool) -> None: ...

    def insert_lines_batch(self, lines: Sequence[Line]) -> None: ...

    def insert_toc_entry(self, entry: TocEntry) -> int: ...

    def insert_line_toc_batch(self, rows: Sequence[tuple[int, int]]) -> None: ...

    def insert_alt_toc_structure(self, structure: AltTocStructure) -> int: ...

    def insert_alt_toc_entry(self, entry: AltTocEntry) -> int: ...

    def insert_line_alt_toc_batch(self, rows: Sequence[tuple[int, int, int]]) -> None: ...

    def insert_links_batch(self, links: Sequence[Link]) -> None: ...

    def find_book_by_title(self, title: str) -> int | None: ...

    def set_default_commentators(self, book_id: int, commentator_ids: Sequence[int]) -> None: ...

    def set_default_targumim(self, book_id: int, targum_ids: Sequence[int]) -> None: ...

    def update_book_link_flags(self) -> None: ...


class SqliteRepository:
    """SQLite implementation of :class:`StorageBackend`.

    Args:
        db_path: Path to an initialized database.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._conn = get_connection(db_path)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteRepository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit everything done inside the block, or roll it all back."""
        try:
            yield
        except Exception:
            self._conn.rollback()
            raise
        self._conn.commit()

    def insert_category(self, category: Category) -> int:
        cursor = self._conn.execute(
            'INSERT INTO category (parent_id, title, level, "order") VALUES (?, ?, ?, ?)',
            (category.parent_id, category.title, category.level, category.order),
        )
        return int(cursor.lastrowid)

    def insert_book(self, book: Book) -> int:
        cursor = self._conn.execute(
            """
            INSERT INTO book (
                id, category_id, he_title, en_title, normalized_title,
                category_level, "order", authors_json, description,
                pub_dates_json, is_base_book, total_lines, has_alt_structures
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                book.id or None,
                book.category_id,
                book.he_title,
                book.en_title,
                normalize_title_key(book.he_title),
                book.category_level,
                book.order,
                json.dumps(book.authors, ensure_ascii=False),
                book.description,
                json.dumps(book.pub_dates, ensure_ascii=False),
                int(book.is_base_book),
                book.total_lines,
                int(book.has_alt_structures),
            ),
        )
        return int(cursor.lastrowid)

    def update_book_alt_structures(self, book_id: int, has_alt_structures: bool) -> None:
        self._conn.execute(
            "UPDATE book SET has_alt_structures = ? WHERE id = ?",
            (int(has_alt_structures), book_id),
        )

    def insert_lines_batch(self, lines: Sequence[Line]) -> None:
        self._conn.executemany(
            "INSERT INTO line (id, book_id, line_index, content, ref, he_ref) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (line.id or None, line.book_id, line.line_index, line.content, line.ref, line.he_ref)
                for line in lines
            ],
        )

    def insert_toc_entry(self, entry: TocEntry) -> int:
        cursor = self._conn.execute(
            "INSERT INTO toc_entry (book_id, parent_id, level, text, line_id, has_children, is_last_child) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                entry.book_id,
                entry.parent_id,
                entry.level,
                entry.text,
                entry.line_id,
                int(entry.has_children),
                int(entry.is_last_child),
            ),
        )
        return int(cursor.lastrowid)

    def insert_line_toc_batch(self, rows: Sequence[tuple[int, int]]) -> None:
        self._conn.executemany(
            "INSERT OR REPLACE INTO line_toc (line_id, toc_entry_id) VALUES (?, ?)",
            rows,
        )

    def insert_alt_toc_structure(self, structure: AltTocStructure) -> int:
        cursor = self._conn.execute(
            "INSERT INTO alt_toc_structure (book_id, key, title, he_title) VALUES (?, ?, ?, ?)",
            (structure.book_id, structure.key, structure.title, structure.he_title),
        )
        return int(cursor.lastrowid)

    def insert_alt_toc_entry(self, entry: AltTocEntry) -> int:
        cursor = self._conn.execute(
            "INSERT INTO alt_toc_entry (structure_id, parent_id, level, text, line_id, has_children, is_last_child) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                entry.structure_id,
                entry.parent_id,
                entry.level,
                entry.text,
                entry.line_id,
                int(entry.has_children),
                int(entry.is_last_child),
            ),
        )
        return int(cursor.lastrowid)

    def insert_line_alt_toc_batch(self, rows: Sequence[tuple[int, int, int]]) -> None:
        self._conn.executemany(
            "INSERT OR REPLACE INTO line_alt_toc (line_id, structure_id, alt_toc_entry_id) "
            "VALUES (?, ?, ?)",
            rows,
        )

    def insert_links_batch(self, links: Sequence[Link]) -> None:
        self._conn.executemany(
            "INSERT INTO link (source_book_id, target_book_id, source_line_id, target_line_id, connection_type) "
            "VALUES (?, ?, ?, ?, ?)",
            [
                (
                    link.source_book_id,
                    link.target_book_id,
                    link.source_line_id,
                    link.target_line_id,
                    link.connection_type.value,
                )
                for link in links
            ],
        )

    def find_book_by_title(self, title: str) -> int | None:
        """Find a book id by title, ignoring case, quote style and underscores."""
        key = normalize_title_key(title)
        if key is None:
            return None
        row = self._conn.execute(
            "SELECT id FROM book WHERE normalized_title = ? ORDER BY id LIMIT 1",
            (key,),
        ).fetchone()
        return int(row["id"]) if row is not None else None

    def set_default_commentators(self, book_id: int, commentator_ids: Sequence[int]) -> None:
        """Replace the ordered default commentators of a base book."""
        self._conn.execute("DELETE FROM default_commentators WHERE book_id = ?", (book_id,))
        self._conn.executemany(
            "INSERT INTO default_commentators (book_id, commentator_book_id, position) "
            "VALUES (?, ?, ?)",
            [(book_id, commentator_id, pos) for pos, commentator_id in enumerate(commentator_ids)],
        )

    def set_default_targumim(self, book_id: int, targum_ids: Sequence[int]) -> None:
        """Replace the ordered default targumim of a base book."""
        self._conn.execute("DELETE FROM default_targumim WHERE book_id = ?", (book_id,))
        self._conn.executemany(
            "INSERT INTO default_targumim (book_id, targum_book_id, position) VALUES (?, ?, ?)",
            [(book_id, targum_id, pos) for pos, targum_id in enumerate(targum_ids)],
        )

    def update_book_link_flags(self) -> None:
        """Recompute per-book link presence and connection-type flags."""
        self._conn.execute(
            "INSERT OR IGNORE INTO book_has_links (book_id, has_source_links, has_target_links) "
            "SELECT id, 0, 0 FROM book"
        )
        self._conn.execute("UPDATE book_has_links SET has_source_links = 0, has_target_links = 0")
        self._conn.execute(
            "UPDATE book_has_links SET has_source_links = 1 "
            "WHERE book_id IN (SELECT DISTINCT source_book_id FROM link)"
        )
        self._conn.execute(
            "UPDATE book_has_links SET has_target_links = 1 "
            "WHERE book_id IN (SELECT DISTINCT target_book_id FROM link)"
        )

        columns = CONNECTION_FLAG_COLUMNS.values()
        self._conn.execute(f"UPDATE book SET {', '.join(f'{c} = 0' for c in columns)}")
        for connection_type, column in CONNECTION_FLAG_COLUMNS.items():
            self._conn.execute(
                f"UPDATE book SET {column} = 1 WHERE id IN ("
                "SELECT source_book_id FROM link WHERE connection_type = ? "
                "UNION SELECT target_book_id FROM link WHERE connection_type = ?)",
                (connection_type.value, connection_type.value),
            )
        logger.debug("Updated link flags for all books")

