"""Tests for database initialization and the SQLite repository."""

import sqlite3
from pathlib import Path

import pytest

from seforim_index.models.book import Book, Category, Line
from seforim_index.models.link import ConnectionType, Link
from seforim_index.models.toc import TocEntry
from seforim_index.storage import SqliteRepository, get_connection, initialize_database


def _tables(db_path: Path) -> list[str]:
    conn = sqlite3.connect(str(db_path))
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in cursor.fetchall()]
    conn.close()
    return tables


@pytest.fixture
def repository(tmp_path: Path):
    db_path = tmp_path / "test.db"
    initialize_database(db_path)
    with SqliteRepository(db_path) as repo:
        yield repo


def _seed_book(repository: SqliteRepository, he_title: str = 'שו"ע', book_id: int = 1) -> int:
    category_id = repository.insert_category(Category(title="הלכה"))
    return repository.insert_book(Book(id=book_id, category_id=category_id, he_title=he_title))


class TestInitializeDatabase:
    def test_creates_tables(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        tables = _tables(db_path)
        for name in (
            "category",
            "book",
            "line",
            "toc_entry",
            "line_toc",
            "alt_toc_structure",
            "alt_toc_entry",
            "line_alt_toc",
            "link",
            "default_commentators",
            "default_targumim",
            "book_has_links",
        ):
            assert name in tables

    def test_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)
        initialize_database(db_path)  # Should not raise
        assert "book" in _tables(db_path)

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "dir" / "test.db"
        initialize_database(db_path)
        assert db_path.exists()

    def test_line_table_schema(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = sqlite3.connect(str(db_path))
        cursor = conn.execute("PRAGMA table_info(line)")
        columns = {row[1]: row[2] for row in cursor.fetchall()}
        conn.close()

        assert set(columns) == {"id", "book_id", "line_index", "content", "ref", "he_ref"}


class TestGetConnection:
    def test_returns_connection_with_row_factory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = get_connection(db_path)
        assert conn.row_factory == sqlite3.Row
        conn.close()

    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = get_connection(db_path)
        cursor = conn.execute("PRAGMA journal_mode")
        mode = cursor.fetchone()[0]
        conn.close()
        assert mode == "wal"

    def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = get_connection(db_path)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()


class TestSqliteRepository:
    def test_find_book_by_title_ignores_quote_style(self, repository: SqliteRepository) -> None:
        book_id = _seed_book(repository)
        assert repository.find_book_by_title("שו״ע") == book_id
        assert repository.find_book_by_title("שוע") == book_id
        assert repository.find_book_by_title("אחר") is None
        assert repository.find_book_by_title("  ") is None

    def test_transaction_rolls_back_on_error(self, repository: SqliteRepository) -> None:
        with pytest.raises(RuntimeError):
            with repository.transaction():
                _seed_book(repository)
                raise RuntimeError("boom")
        assert repository.find_book_by_title('שו"ע') is None

    def test_lines_require_existing_book(self, repository: SqliteRepository) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            repository.insert_lines_batch([Line(id=1, book_id=42, line_index=0, content="x")])

    def test_toc_entries_get_row_ids(self, repository: SqliteRepository) -> None:
        book_id = _seed_book(repository)
        repository.insert_lines_batch([Line(id=1, book_id=book_id, line_index=0, content="x")])

        root = repository.insert_toc_entry(TocEntry(id=1, book_id=book_id, level=0, text="א", line_id=1))
        child = repository.insert_toc_entry(
            TocEntry(id=2, book_id=book_id, parent_id=root, level=1, text="ב", line_id=1)
        )
        repository.insert_line_toc_batch([(1, root), (1, child)])

        assert child != root

    def test_link_flags(self, repository: SqliteRepository) -> None:
        first = _seed_book(repository, "ספר א", 1)
        second = _seed_book(repository, "ספר ב", 2)
        _seed_book(repository, "ספר ג", 3)
        repository.insert_lines_batch(
            [
                Line(id=1, book_id=first, line_index=0, content="x"),
                Line(id=2, book_id=second, line_index=0, content="y"),
            ]
        )
        repository.insert_links_batch(
            [
                Link(
                    source_book_id=first,
                    target_book_id=second,
                    source_line_id=1,
                    target_line_id=2,
                    connection_type=ConnectionType.TARGUM,
                )
            ]
        )

        repository.update_book_link_flags()

        conn = repository._conn
        flags = conn.execute(
            "SELECT book_id, has_source_links, has_target_links FROM book_has_links ORDER BY book_id"
        ).fetchall()
        assert [tuple(row) for row in flags] == [(1, 1, 0), (2, 0, 1), (3, 0, 0)]
        targum = conn.execute("SELECT id, has_targum_connection FROM book ORDER BY id").fetchall()
        assert [tuple(row) for row in targum] == [(1, 1), (2, 1), (3, 0)]

    def test_default_commentators_are_replaced(self, repository: SqliteRepository) -> None:
        base = _seed_book(repository, "בראשית", 1)
        rashi = _seed_book(repository, "רש״י על בראשית", 2)
        ramban = _seed_book(repository, "רמב״ן על בראשית", 3)

        repository.set_default_commentators(base, [rashi, ramban])
        repository.set_default_commentators(base, [ramban])
        repository.set_default_targumim(base, [rashi])

        conn = repository._conn
        rows = conn.execute(
            "SELECT book_id, commentator_book_id, position FROM default_commentators"
        ).fetchall()
        assert [tuple(row) for row in rows] == [(1, 3, 0)]
        targumim = conn.execute("SELECT book_id, targum_book_id, position FROM default_targumim").fetchall()
        assert [tuple(row) for row in targumim] == [(1, 2, 0)]
