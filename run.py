"""Entry point: import a Sefaria export into a fresh SQLite database."""

import logging
from pathlib import Path

from seforim_index.config import load_config
from seforim_index.ingestion.importer import SefariaImporter
from seforim_index.storage.database import initialize_database
from seforim_index.storage.repository import SqliteRepository

logger = logging.getLogger(__name__)


def main() -> None:
    """Load configuration, rebuild the database and run one import."""
    config = load_config()
    logging.basicConfig(level=config.logging.level, format=config.logging.format)

    db_path = Path(config.storage.sqlite_path)
    # Ids are assigned by the importer, so every run starts from an empty database.
    for stale in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if stale.exists():
            logger.info("Removing existing database file %s", stale)
            stale.unlink()
    initialize_database(db_path)

    with SqliteRepository(db_path) as repository:
        importer = SefariaImporter(
            export_root=config.storage.export_root,
            repository=repository,
            config=config.ingestion,
            priority_file=config.storage.priority_file,
            default_commentators_file=config.storage.default_commentators_file,
            default_targumim_file=config.storage.default_targumim_file,
        )
        importer.run()


if __name__ == "__main__":
    main()
