"""Reading Sefaria book files into self-contained ``BookPayload`` records.

Each ``merged.json`` text file is paired with its schema file, parsed and
flattened by a worker of a bounded thread pool. Workers share nothing but
the read-only schema lookup; a book that fails to parse is logged and
skipped without affecting the others.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import chardet
from pydantic import BaseModel, Field

from seforim_index.ingestion.flattener import flatten_book
from seforim_index.models.payload import AltNode, AltStructure, BookPayload
from seforim_index.models.schema import schema_node_from_json, text_value_from_json
from seforim_index.text.citations import normalize_title_key, sanitize_folder

logger = logging.getLogger(__name__)

TEXT_FILE_NAME = "merged.json"
DEFAULT_PARALLELISM = 8


class ReadResult(BaseModel):
    """Books read from one export, plus the files that were skipped."""

    payloads: list[BookPayload] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


def read_text_file(file_path: Path) -> str:
    """Read a text file with encoding detection.

    Tries UTF-8 first, then uses chardet for fallback detection.

    Args:
        file_path: Path to the file.

    Returns:
        The decoded content.
    """
    try:
        return file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        pass

    raw_bytes = file_path.read_bytes()
    detected = chardet.detect(raw_bytes)
    encoding = detected.get("encoding") or "utf-8"
    confidence = detected.get("confidence") or 0

    if confidence < 0.7:
        logger.warning(
            "Low confidence encoding detection for %s: %s (%.0f%%)",
            file_path,
            encoding,
            confidence * 100,
        )

    try:
        return raw_bytes.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        # Sefaria exports predating UTF-8 were windows-1255
        return raw_bytes.decode("windows-1255")


def read_json_file(file_path: Path) -> Any:
    return json.loads(read_text_file(file_path))


class BookPayloadReader:
    """Reads every book of an export into ``BookPayload`` records.

    Args:
        parallelism: Maximum number of books read at the same time.
    """

    def __init__(self, parallelism: int = DEFAULT_PARALLELISM) -> None:
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self._parallelism = parallelism

    def build_schema_lookup(self, schema_dir: Path) -> dict[str, Path]:
        """Map normalized schema titles (Latin and Hebrew) to schema files.

        Unreadable schema files are ignored; the first file claiming a title
        keeps it.
        """
        lookup: dict[str, Path] = {}
        for schema_path in sorted(Path(schema_dir).glob("*.json")):
            try:
                schema_json = read_json_file(schema_path)
            except (OSError, ValueError):
                logger.debug("Skipping unreadable schema %s", schema_path, exc_info=True)
                continue
            schema_obj = schema_json.get("schema") if isinstance(schema_json, dict) else None
            if not isinstance(schema_obj, dict):
                continue
            for title in (_string(schema_obj.get("title")), _string(schema_obj.get("heTitle"))):
                key = normalize_title_key(title)
                if key is not None:
                    lookup.setdefault(key, schema_path)
        logger.info("Indexed %d schema titles from %s", len(lookup), schema_dir)
        return lookup

    def read_books(
        self, json_dir: Path, schema_dir: Path, schema_lookup: dict[str, Path]
    ) -> ReadResult:
        """Read every ``merged.json`` under ``json_dir`` in parallel.

        Payloads are returned in sorted file order regardless of which
        worker finished first.
        """
        text_files = sorted(
            path
            for path in Path(json_dir).rglob("*")
            if path.is_file() and path.name.lower() == TEXT_FILE_NAME
        )
        logger.info("Found %d %s files to process", len(text_files), TEXT_FILE_NAME)

        result = ReadResult()
        with ThreadPoolExecutor(max_workers=self._parallelism) as executor:
            futures = [
                executor.submit(self._read_one, path, Path(schema_dir), schema_lookup)
                for path in text_files
            ]
            for path, future in zip(text_files, futures):
                payload = future.result()
                if payload is None:
                    result.skipped.append(str(path))
                else:
                    result.payloads.append(payload)

        logger.info("Parsed %d books, skipped %d", len(result.payloads), len(result.skipped))
        return result

    def _read_one(
        self, text_path: Path, schema_dir: Path, schema_lookup: dict[str, Path]
    ) -> BookPayload | None:
        try:
            return self.parse_book_file(text_path, schema_dir, schema_lookup)
        except Exception:
            logger.warning("Failed to prepare book from %s", text_path, exc_info=True)
            return None

    def parse_book_file(
        self, text_path: Path, schema_dir: Path, schema_lookup: dict[str, Path]
    ) -> BookPayload | None:
        """Pair one text file with its schema and flatten it.

        Args:
            text_path: A ``merged.json`` file.
            schema_dir: The export's ``schemas`` directory.
            schema_lookup: Output of :meth:`build_schema_lookup`.

        Returns:
            The book payload, or None when no schema or text is found.

        Raises:
            ValueError: If a file is not valid JSON.
        """
        text_json = read_json_file(text_path)
        if not isinstance(text_json, dict):
            raise ValueError(f"Expected a JSON object in {text_path}")
        file_title = _string(text_json.get("title"))
        file_he_title = _string(text_json.get("heTitle"))
        folder_name = text_path.parent.name or None

        schema_path = resolve_schema_path(
            file_title, file_he_title, folder_name, schema_dir, schema_lookup
        )
        if schema_path is None:
            logger.warning("No schema found for %s", text_path)
            return None

        schema_json = read_json_file(schema_path)
        schema_obj = schema_json.get("schema") if isinstance(schema_json, dict) else None
        if not isinstance(schema_obj, dict):
            logger.warning("Schema file %s has no schema object", schema_path)
            return None

        en_title = _string(schema_obj.get("title")) or file_title or folder_name
        if en_title is None:
            return None
        he_title = _string(schema_obj.get("heTitle")) or file_he_title or en_title

        if "text" not in text_json:
            logger.warning("Text file %s has no text", text_path)
            return None

        categories = (
            _string_list_or_none(schema_json.get("heCategories"))
            or _string_list_or_none(schema_obj.get("heCategories"))
            or _string_list_or_none(text_json.get("categories"))
            or []
        )
        authors = [
            name
            for name in (
                _string(author.get("he"))
                for author in schema_json.get("authors") or []
                if isinstance(author, dict)
            )
            if name is not None
        ]

        flattened = flatten_book(
            schema=schema_node_from_json(schema_obj),
            text=text_value_from_json(text_json["text"]),
            en_title=en_title,
            he_title=he_title,
        )

        return BookPayload(
            he_title=he_title,
            en_title=en_title,
            categories=[sanitize_folder(category) for category in categories],
            lines=flattened.lines,
            ref_entries=flattened.ref_entries,
            headings=flattened.headings,
            authors=authors,
            description=extract_description(schema_json, schema_obj),
            pub_dates=extract_pub_dates(schema_json, schema_obj),
            alt_structures=parse_alt_structures(schema_json),
        )


def resolve_schema_path(
    title: str | None,
    he_title: str | None,
    folder_name: str | None,
    schema_dir: Path,
    lookup: dict[str, Path],
) -> Path | None:
    """Find the schema of a text file.

    Candidates are the text's title, its Hebrew title, the folder name with
    underscores as spaces, and the raw folder name. Each is tried in the
    lookup first and then as ``<candidate>.json`` with spaces as underscores.
    """
    candidates = [
        candidate
        for candidate in (
            title,
            he_title,
            folder_name.replace("_", " ") if folder_name else None,
            folder_name,
        )
        if candidate
    ]
    for candidate in candidates:
        key = normalize_title_key(candidate)
        if key is not None and key in lookup:
            return lookup[key]
        path = schema_dir / f"{candidate.replace(' ', '_')}.json"
        if path.exists():
            return path
    return None


def extract_description(schema_json: dict, schema_obj: dict) -> str | None:
    for key in ("heDesc", "description", "heDescription"):
        for source in (schema_json, schema_obj):
            value = _string(source.get(key))
            if value is not None:
                return value
    return None


def extract_pub_dates(schema_json: dict, schema_obj: dict) -> list[str]:
    """Collect ``pubDate`` values (string or list) from both schema levels, deduplicated."""
    dates: list[str] = []
    for source in (schema_json, schema_obj):
        value = source.get("pubDate")
        if isinstance(value, list):
            dates.extend(item for item in (_string(v) for v in value) if item is not None)
        else:
            item = _string(value)
            if item is not None:
                dates.append(item)
    return list(dict.fromkeys(dates))


def parse_alt_structures(schema_json: dict) -> list[AltStructure]:
    """Parse the ``alts`` (or legacy ``alt_structs``) section of a schema file."""
    alts = schema_json.get("alts") or schema_json.get("alt_structs")
    if not isinstance(alts, dict):
        return []

    structures: list[AltStructure] = []
    for key, value in alts.items():
        if not isinstance(value, dict) or not isinstance(value.get("nodes"), list):
            continue
        structures.append(
            AltStructure(
                key=str(key),
                title=_string(value.get("title")),
                he_title=_string(value.get("heTitle")),
                nodes=[parse_alt_node(node) for node in value["nodes"] if isinstance(node, dict)],
            )
        )
    return structures


def parse_alt_node(raw: dict) -> AltNode:
    child_label = _first(raw.get("heSectionNames")) or _first(raw.get("sectionNames"))
    return AltNode(
        title=_string(raw.get("title")),
        he_title=_string(raw.get("heTitle")),
        whole_ref=_string(raw.get("wholeRef")),
        refs=_string_list_or_none(raw.get("refs")) or [],
        address_types=_string_list_or_none(raw.get("addressTypes")) or [],
        child_label=child_label,
        addresses=_int_list(raw.get("addresses")),
        skipped_addresses=_int_list(raw.get("skipped_addresses")),
        starting_address=_string(raw.get("startingAddress")),
        offset=_int(raw.get("offset")),
        children=[
            parse_alt_node(child) for child in raw.get("nodes") or [] if isinstance(child, dict)
        ],
    )


def _string(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    return str(value)


def _string_list_or_none(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item for item in (_string(v) for v in value) if item is not None]


def _first(value: Any) -> str | None:
    if isinstance(value, list) and value:
        return _string(value[0])
    return None


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _int_list(value: Any) -> list[int]:
    if not isinstance(value, list):
        return []
    return [item for item in (_int(v) for v in value) if item is not None]
