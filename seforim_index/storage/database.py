"""SQLite database initialization and connection management."""

import sqlite3
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS category (
    id INTEGER PRIMARY KEY,
    parent_id INTEGER REFERENCES category(id),
    title TEXT NOT NULL,
    level INTEGER NOT NULL DEFAULT 0,
    "order" INTEGER NOT NULL DEFAULT 999
);

CREATE TABLE IF NOT EXISTS book (
    id INTEGER PRIMARY KEY,
    category_id INTEGER NOT NULL REFERENCES category(id),
    he_title TEXT NOT NULL,
    en_title TEXT DEFAULT '',
    normalized_title TEXT,
    category_level INTEGER DEFAULT 0,
    "order" REAL DEFAULT 999,
    authors_json TEXT DEFAULT '[]',
    description TEXT,
    pub_dates_json TEXT DEFAULT '[]',
    is_base_book INTEGER DEFAULT 0,
    total_lines INTEGER DEFAULT 0,
    has_alt_structures INTEGER DEFAULT 0,
    has_targum_connection INTEGER DEFAULT 0,
    has_reference_connection INTEGER DEFAULT 0,
    has_source_connection INTEGER DEFAULT 0,
    has_commentary_connection INTEGER DEFAULT 0,
    has_other_connection INTEGER DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_book_normalized_title ON book(normalized_title);

CREATE TABLE IF NOT EXISTS line (
    id INTEGER PRIMARY KEY,
    book_id INTEGER NOT NULL REFERENCES book(id),
    line_index INTEGER NOT NULL,
    content TEXT NOT NULL,
    ref TEXT,
    he_ref TEXT,
    UNIQUE (book_id, line_index)
);

CREATE TABLE IF NOT EXISTS toc_entry (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id INTEGER NOT NULL REFERENCES book(id),
    parent_id INTEGER REFERENCES toc_entry(id),
    level INTEGER NOT NULL,
    text TEXT NOT NULL,
    line_id INTEGER REFERENCES line(id),
    has_children INTEGER DEFAULT 0,
    is_last_child INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS line_toc (
    line_id INTEGER PRIMARY KEY REFERENCES line(id),
    toc_entry_id INTEGER NOT NULL REFERENCES toc_entry(id)
);

CREATE TABLE IF NOT EXISTS alt_toc_structure (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id INTEGER NOT NULL REFERENCES book(id),
    key TEXT NOT NULL,
    title TEXT,
    he_title TEXT,
    UNIQUE (book_id, key)
);

CREATE TABLE IF NOT EXISTS alt_toc_entry (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    structure_id INTEGER NOT NULL REFERENCES alt_toc_structure(id),
    parent_id INTEGER REFERENCES alt_toc_entry(id),
    level INTEGER NOT NULL,
    text TEXT NOT NULL,
    line_id INTEGER REFERENCES line(id),
    has_children INTEGER DEFAULT 0,
    is_last_child INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS line_alt_toc (
    line_id INTEGER NOT NULL REFERENCES line(id),
    structure_id INTEGER NOT NULL REFERENCES alt_toc_structure(id),
    alt_toc_entry_id INTEGER NOT NULL REFERENCES alt_toc_entry(id),
    PRIMARY KEY (line_id, structure_id)
);

CREATE TABLE IF NOT EXISTS link (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_book_id INTEGER NOT NULL REFERENCES book(id),
    target_book_id INTEGER NOT NULL REFERENCES book(id),
    source_line_id INTEGER NOT NULL REFERENCES line(id),
    target_line_id INTEGER NOT NULL REFERENCES line(id),
    connection_type TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_link_source_line ON link(source_line_id);
CREATE INDEX IF NOT EXISTS idx_link_target_line ON link(target_line_id);

CREATE TABLE IF NOT EXISTS default_commentators (
    book_id INTEGER NOT NULL REFERENCES book(id),
    commentator_book_id INTEGER NOT NULL REFERENCES book(id),
    position INTEGER NOT NULL,
    PRIMARY KEY (book_id, commentator_book_id)
);

CREATE TABLE IF NOT EXISTS default_targumim (
    book_id INTEGER NOT NULL REFERENCES book(id),
    targum_book_id INTEGER NOT NULL REFERENCES book(id),
    position INTEGER NOT NULL,
    PRIMARY KEY (book_id, targum_book_id)
);

CREATE TABLE IF NOT EXISTS book_has_links (
    book_id INTEGER PRIMARY KEY REFERENCES book(id),
    has_source_links INTEGER DEFAULT 0,
    has_target_links INTEGER DEFAULT 0
);
"""


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """Create a connection to the SQLite database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        A sqlite3 Connection with row_factory set to Row.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def initialize_database(db_path: str | Path) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        db_path: Path to the SQLite database file.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()
