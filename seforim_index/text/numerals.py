"""Hebrew numeral (gematria) and Talmud folio (daf) address codec."""

import string
from functools import lru_cache

HUNDREDS: list[tuple[int, str]] = [
    (400, "ת"),
    (300, "ש"),
    (200, "ר"),
    (100, "ק"),
]

TENS: list[tuple[int, str]] = [
    (90, "צ"),
    (80, "פ"),
    (70, "ע"),
    (60, "ס"),
    (50, "נ"),
    (40, "מ"),
    (30, "ל"),
    (20, "כ"),
    (10, "י"),
]

UNITS: list[tuple[int, str]] = [
    (9, "ט"),
    (8, "ח"),
    (7, "ז"),
    (6, "ו"),
    (5, "ה"),
    (4, "ד"),
    (3, "ג"),
    (2, "ב"),
    (1, "א"),
]

# 15 and 16 are written ט+ו / ט+ז so the letters never spell the divine name.
SPECIAL_VALUES: dict[int, str] = {
    15: "טו",
    16: "טז",
}

DAF_RECTO_MARK = "."
DAF_VERSO_MARK = ":"


def to_alphabetic_numeral(num: int) -> str:
    """Render a positive integer as a Hebrew alphabetic numeral.

    Values of 1000 and above are written as the thousands count, a space,
    and the remainder (e.g. 5784 -> "ה תשפד"). Non-positive values are
    returned as their decimal string.

    Args:
        num: The integer to render.

    Returns:
        The Hebrew numeral string.
    """
    if num <= 0:
        return str(num)
    if num < 10000:
        return _cached_numeral(num)
    return _render_numeral(num)


@lru_cache(maxsize=10000)
def _cached_numeral(num: int) -> str:
    return _render_numeral(num)


def _render_numeral(num: int) -> str:
    thousands, remainder = divmod(num, 1000)
    parts: list[str] = []
    if thousands > 0:
        parts.append(to_alphabetic_numeral(thousands) + " ")

    for value, letter in HUNDREDS:
        while remainder >= value:
            parts.append(letter)
            remainder -= value

    if remainder in SPECIAL_VALUES:
        parts.append(SPECIAL_VALUES[remainder])
        remainder = 0

    for table in (TENS, UNITS):
        for value, letter in table:
            if remainder >= value:
                parts.append(letter)
                remainder -= value

    return "".join(parts)


def to_leaf_notation(index: int) -> str:
    """Render a folio position as a Hebrew daf label ("ב." / "ב:")."""
    i = index + 1
    if i % 2 == 0:
        return f"{to_alphabetic_numeral(i // 2)}{DAF_RECTO_MARK}"
    return f"{to_alphabetic_numeral(i // 2)}{DAF_VERSO_MARK}"


def to_ascii_leaf_notation(index: int) -> str:
    """Render a folio position as a Latin daf label ("2a" / "2b")."""
    i = index + 1
    if i % 2 == 0:
        return f"{i // 2}a"
    return f"{i // 2}b"


def parse_leaf_index(text: str | None) -> int | None:
    """Parse a Latin daf label back to its folio position.

    The first run of digits is the leaf number; an ``a``/``b`` directly after
    it selects the side (``a`` when absent). Inverse of
    :func:`to_ascii_leaf_notation`.

    Args:
        text: A daf label such as ``"2a"``, ``"13b"`` or ``"7"``.

    Returns:
        The folio position, or None if the text holds no digits.
    """
    if not text or not text.strip():
        return None
    value = text.strip()

    start = 0
    while start < len(value) and value[start] not in string.digits:
        start += 1
    if start == len(value):
        return None
    end = start
    while end < len(value) and value[end] in string.digits:
        end += 1

    leaf = int(value[start:end])
    side = value[end].lower() if end < len(value) else "a"
    offset = 2 if side == "b" else 1
    return (leaf - 1) * 2 + offset
