"""Default commentators and targumim shown alongside a base book.

Each mapping file is a JSON list of objects such as::

    [{"book": "Genesis", "commentators": ["Rashi on Genesis", "Ramban on Genesis"]}]

(``"targumim"`` instead of ``"commentators"`` for the targum file). Titles
may be Latin or Hebrew; they are matched by normalized title key.
"""

import json
import logging
from pathlib import Path

from seforim_index.text.citations import normalize_title_key

logger = logging.getLogger(__name__)

COMMENTATORS_KEY = "commentators"
TARGUMIM_KEY = "targumim"


def load_default_mapping(path: str | Path | None, list_key: str) -> dict[str, list[str]]:
    """Read a mapping file into normalized base-title key -> ordered title keys.

    Entries without a usable book title or without any usable mapped title
    are dropped. A missing file yields an empty mapping; an unreadable one
    is logged and also yields an empty mapping.

    Args:
        path: The mapping file, or None when not configured.
        list_key: ``"commentators"`` or ``"targumim"``.
    """
    if path is None:
        return {}
    mapping_file = Path(path)
    if not mapping_file.exists():
        logger.info("No default %s file at %s", list_key, mapping_file)
        return {}

    try:
        with open(mapping_file, encoding="utf-8") as f:
            entries = json.load(f)
        if not isinstance(entries, list):
            raise ValueError(f"Expected a list at the top of {mapping_file}")
    except (OSError, ValueError):
        logger.warning(
            "Unable to read %s, continuing without default %s",
            mapping_file,
            list_key,
            exc_info=True,
        )
        return {}

    mapping: dict[str, list[str]] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        book_key = normalize_title_key(_string(entry.get("book")))
        titles = entry.get(list_key)
        if book_key is None or not isinstance(titles, list):
            continue
        keys = [key for key in (normalize_title_key(_string(t)) for t in titles) if key]
        if keys:
            mapping[book_key] = keys
    logger.info("Loaded default %s for %d base books", list_key, len(mapping))
    return mapping


def resolve_default_mapping(
    mapping: dict[str, list[str]], title_to_book_id: dict[str, int]
) -> dict[int, list[int]]:
    """Turn title keys into book ids.

    Base books that were not imported are skipped, as are mapped titles
    that were not imported or that name the base book itself. Ids keep the
    file order and appear once.
    """
    resolved: dict[int, list[int]] = {}
    for book_key, keys in mapping.items():
        base_id = title_to_book_id.get(book_key)
        if base_id is None:
            continue
        ids = list(
            dict.fromkeys(
                book_id
                for book_id in (title_to_book_id.get(key) for key in keys)
                if book_id is not None and book_id != base_id
            )
        )
        if ids:
            resolved[base_id] = ids
    return resolved


def _string(value: object) -> str | None:
    return value if isinstance(value, str) else None
