"""Category and book ordering: ``table_of_contents.json`` and the priority list.

The priority list names base books (Tanakh, Mishnah, Talmud, ...) one per
line as ``category/.../title``; listed books are imported first, in list
order, and are flagged as base books for link classification.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from seforim_index.ingestion.export_layout import TABLE_OF_CONTENTS_FILE
from seforim_index.models.payload import BookPayload
from seforim_index.text.citations import sanitize_folder

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
COMMENT_PREFIX = "#"


class CatalogOrders(BaseModel):
    """Sort orders read from ``table_of_contents.json``.

    Category keys are ``/``-joined paths (and bare top-level names); book
    keys are Latin and Hebrew titles.
    """

    categories: dict[str, int] = Field(default_factory=dict)
    books: dict[str, int] = Field(default_factory=dict)


def parse_table_of_contents_orders(db_root: Path) -> CatalogOrders:
    """Read category and book orders from the export's table of contents.

    A missing file yields empty orders and the import falls back to the
    default order for everything. A malformed file keeps whatever orders
    were read before the error.
    """
    toc_file = Path(db_root) / TABLE_OF_CONTENTS_FILE
    orders = CatalogOrders()
    if not toc_file.exists():
        logger.warning("%s not found, using default ordering", TABLE_OF_CONTENTS_FILE)
        return orders

    try:
        with open(toc_file, encoding="utf-8") as f:
            toc_entries = json.load(f)
        if not isinstance(toc_entries, list):
            raise ValueError(f"Expected a list at the top of {toc_file}")

        for category_entry in toc_entries:
            if not isinstance(category_entry, dict):
                continue
            order = _order_of(category_entry, allow_base_text_order=False)
            if order is None:
                continue
            name_en = _string(category_entry.get("category"))
            name_he = _string(category_entry.get("heCategory"))
            for name in (name_en, name_he):
                if name is not None:
                    _put_category(orders, name, order)

            path_key = name_he or name_en
            if path_key is None:
                continue
            for item in category_entry.get("contents") or []:
                if isinstance(item, dict):
                    _process_toc_item(orders, item, [path_key])
    except (OSError, TypeError, ValueError):
        logger.exception("Error parsing %s, keeping orders read so far", toc_file)
        return orders

    logger.info(
        "Parsed TOC orders: %d categories, %d books", len(orders.categories), len(orders.books)
    )
    return orders


def _process_toc_item(orders: CatalogOrders, item: dict, category_path: list[str]) -> None:
    order = _order_of(item, allow_base_text_order=True)
    title = _string(item.get("title"))
    he_title = _string(item.get("heTitle"))
    if order is not None:
        if title is not None:
            orders.books[title] = order
        if he_title is not None:
            orders.books[he_title] = order
            orders.books[sanitize_folder(he_title)] = order

    category = _string(item.get("category"))
    he_category = _string(item.get("heCategory"))
    if order is not None and category_path:
        for name in (category, he_category):
            if name is not None:
                _put_category(orders, PATH_SEPARATOR.join(category_path + [name]), order)

    next_name = he_category or category
    next_path = category_path + [next_name] if next_name is not None else category_path
    for sub_item in item.get("contents") or []:
        if isinstance(sub_item, dict):
            _process_toc_item(orders, sub_item, next_path)


def _put_category(orders: CatalogOrders, key: str, order: int) -> None:
    orders.categories[key] = order
    orders.categories[sanitize_folder(key)] = order


def _order_of(item: dict, allow_base_text_order: bool) -> int | None:
    # Commentaries carry base_text_order instead of order.
    order = _int(item.get("order"))
    if order is None and allow_base_text_order:
        order = _int(item.get("base_text_order"))
    return order


def normalize_priority_entry(raw: str) -> str:
    """Normalize a priority-list line to a sanitized ``/``-joined path."""
    entry = raw.strip().replace("\\", PATH_SEPARATOR)
    return PATH_SEPARATOR.join(
        sanitize_folder(part) for part in entry.split(PATH_SEPARATOR) if part.strip()
    )


def normalized_book_path(categories: list[str], he_title: str) -> str:
    return PATH_SEPARATOR.join(sanitize_folder(part) for part in [*categories, he_title])


def build_book_path(categories: list[str], title: str) -> str:
    return PATH_SEPARATOR.join([*categories, title])


def load_priority_list(path: str | Path | None) -> list[str]:
    """Load the base-book priority list.

    Blank lines and ``#`` comments are ignored. A missing or unreadable
    file yields an empty list.
    """
    if path is None:
        return []
    priority_file = Path(path)
    if not priority_file.exists():
        logger.info("No priority list at %s, keeping default order", priority_file)
        return []
    try:
        with open(priority_file, encoding="utf-8") as f:
            raw_lines = f.readlines()
    except OSError:
        logger.warning(
            "Unable to read priority list %s, continuing with default order",
            priority_file,
            exc_info=True,
        )
        return []

    entries = []
    for raw in raw_lines:
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        entry = normalize_priority_entry(line)
        if entry:
            entries.append(entry)
    logger.info("Loaded %d priority entries from %s", len(entries), priority_file)
    return entries


def apply_priority_ordering(
    payloads: list[BookPayload], priority_entries: list[str]
) -> tuple[list[BookPayload], list[str]]:
    """Move prioritized books to the front, in priority-list order.

    Args:
        payloads: Books in read order.
        priority_entries: Normalized priority paths.

    Returns:
        The reordered books and the entries that matched no book.
    """
    if not priority_entries:
        return list(payloads), []

    lookup: dict[str, BookPayload] = {}
    for payload in payloads:
        lookup.setdefault(normalized_book_path(payload.categories, payload.he_title), payload)

    used: set[str] = set()
    ordered: list[BookPayload] = []
    missing: list[str] = []
    for entry in priority_entries:
        key = normalize_priority_entry(entry)
        payload = lookup.get(key)
        if payload is None:
            missing.append(entry)
        elif key not in used:
            used.add(key)
            ordered.append(payload)

    remaining = [
        payload
        for payload in payloads
        if normalized_book_path(payload.categories, payload.he_title) not in used
    ]
    return ordered + remaining, missing


def _string(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    return str(value)


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None
