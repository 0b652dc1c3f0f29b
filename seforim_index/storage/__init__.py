"""SQLite storage for imported books, lines, TOCs and links."""

from seforim_index.storage.database import get_connection, initialize_database
from seforim_index.storage.repository import SqliteRepository, StorageBackend

__all__ = ["SqliteRepository", "StorageBackend", "get_connection", "initialize_database"]
