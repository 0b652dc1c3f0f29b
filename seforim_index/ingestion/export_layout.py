"""Locating the ``database_export`` folder of an unpacked Sefaria export."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPORT_DIR_NAME = "database_export"
JSON_DIR_NAME = "json"
SCHEMAS_DIR_NAME = "schemas"
LINKS_DIR_NAME = "links"
TABLE_OF_CONTENTS_FILE = "table_of_contents.json"


def is_export_root(path: Path) -> bool:
    """True when ``path`` holds both a ``json`` and a ``schemas`` directory."""
    return path.is_dir() and (path / JSON_DIR_NAME).is_dir() and (path / SCHEMAS_DIR_NAME).is_dir()


def find_database_export_root(base: str | Path) -> Path:
    """Find the export root under ``base``.

    Checked in order: ``base`` itself, ``base/database_export``, then
    ``<child>/database_export`` for every direct child of ``base``.

    Args:
        base: Directory the export was unpacked into.

    Returns:
        The directory containing ``json`` and ``schemas``.

    Raises:
        FileNotFoundError: If no candidate qualifies.
    """
    base = Path(base)
    if is_export_root(base):
        return base

    direct = base / EXPORT_DIR_NAME
    if is_export_root(direct):
        return direct

    if base.is_dir():
        for child in sorted(base.iterdir()):
            candidate = child / EXPORT_DIR_NAME
            if child.is_dir() and is_export_root(candidate):
                logger.debug("Using nested export root %s", candidate)
                return candidate

    raise FileNotFoundError(f"{EXPORT_DIR_NAME} folder not found under {base}")
