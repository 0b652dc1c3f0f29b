"""Citation string normalization.

Every function here is pure and produces comparable keys from the
heterogeneous citation strings found in ref columns and link tables:

- ``canonical_citation``: full citation, lowercased, commas dropped
- ``canonical_base``: canonical citation without its finest locator
  (``Genesis 1:3`` -> ``genesis 1``), used as a chapter/page-level key
- ``canonical_tail``: the locator part only (``genesis 1:3`` -> ``1:3``)
"""

import re

WHITESPACE_RE = re.compile(r"\s+")
LOCATOR_SUFFIX_RE = re.compile(r":\d+[ab]?(?:-\d+[ab]?)?$")
TRAILING_PAGE_RE = re.compile(r" +(\d+[ab]?)$")

QUOTE_CHARS = "\"'"
SEPARATOR_CHARS = ": ,"
HEBREW_GERESH = "׳"
HEBREW_GERSHAYIM = "״"


def normalize_citation(raw: str) -> str:
    """Collapse whitespace runs and trim surrounding spaces and quotes."""
    return WHITESPACE_RE.sub(" ", raw).strip(" " + QUOTE_CHARS)


def canonical_citation(raw: str) -> str:
    """Build the exact-match key for a citation."""
    return normalize_citation(raw.replace(",", "")).lower()


def canonical_tail(raw: str) -> str:
    """Drop leading title tokens up to the first locator-looking token.

    A token is a locator if it contains a digit, a colon or a hyphen. When no
    token qualifies the full canonical citation is returned.
    """
    canonical = canonical_citation(raw)
    tokens = [token for token in canonical.split(" ") if token.strip()]
    for idx, token in enumerate(tokens):
        if any(ch.isdigit() for ch in token) or ":" in token or "-" in token:
            return " ".join(tokens[idx:])
    return canonical


def canonical_base(citation: str) -> str:
    """Strip the trailing ``:N[ab]`` (or ``:N-M``) locator from a citation."""
    normalized = canonical_citation(citation)
    without_locator = LOCATOR_SUFFIX_RE.sub("", normalized)
    return TRAILING_PAGE_RE.sub(r" \1", without_locator).strip()


def strip_book_alias(canonical: str, aliases: set[str] | frozenset[str]) -> str:
    """Remove a leading book-title alias from a canonical citation.

    Args:
        canonical: A citation already passed through ``canonical_citation``.
        aliases: Book titles, each pre-normalized with ``canonical_citation``.

    Returns:
        The citation without the alias, or the input when no alias matches
        or nothing would remain.
    """
    result = canonical
    for alias in aliases:
        if not alias.strip():
            continue
        if result == alias:
            result = ""
            break
        if result.startswith(f"{alias} "):
            result = result[len(alias):].lstrip()
            break
    return result if result.strip() else canonical


def range_start(citation: str) -> str | None:
    """Canonical form of the part before the first hyphen, or None if empty."""
    start = citation.split("-", 1)[0].strip()
    if not start:
        return None
    return canonical_citation(start)


def trim_trailing_separators(value: str) -> str:
    return value.rstrip(SEPARATOR_CHARS)


def sanitize_folder(name: str | None) -> str:
    """Replace ASCII double quotes with gershayim so titles are path-safe."""
    if not name or not name.strip():
        return ""
    return name.replace('"', HEBREW_GERSHAYIM).strip()


def normalize_title_key(value: str | None) -> str | None:
    """Build a lookup key that ignores quote style, case and underscores.

    Titles differing only by geresh/gershayim versus straight quotes map to
    the same key.
    """
    if not value or not value.strip():
        return None
    without_quotes = (
        value.replace('"', "")
        .replace("'", "")
        .replace(HEBREW_GERESH, "")
        .replace(HEBREW_GERSHAYIM, "")
    )
    collapsed = WHITESPACE_RE.sub(" ", without_quotes.lower())
    return collapsed.replace("_", " ").strip()
