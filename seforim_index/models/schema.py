"""Structural schema and text payload models.

A book's schema is a tree of ``SchemaNode`` values: a ``ContainerNode`` holds
titled children, a ``LeafNode`` describes a jagged array of text addressed by
section names (e.g. chapter/verse). The text payload mirrors that shape as a
tree of ``TextValue`` values.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, Field

DEFAULT_NODE_KEY = "default"


class TextStr(BaseModel):
    """A single segment of text."""

    value: str


class TextSeq(BaseModel):
    """An ordered array of text values (one addressing level)."""

    items: list[TextValue | None] = Field(default_factory=list)


class TextKeyed(BaseModel):
    """Text keyed by container child title ("" for the default child)."""

    entries: dict[str, TextValue | None] = Field(default_factory=dict)


TextValue = Union[TextStr, TextSeq, TextKeyed]

TextSeq.model_rebuild()
TextKeyed.model_rebuild()


def is_trivially_empty(value: TextValue | None) -> bool:
    """True for missing or blank text, and arrays made only of such values."""
    if value is None:
        return True
    if isinstance(value, TextStr):
        return not value.value.strip()
    if isinstance(value, TextSeq):
        return all(is_trivially_empty(item) for item in value.items)
    return not value.entries


def text_value_from_json(raw: Any) -> TextValue | None:
    """Convert decoded JSON text into a TextValue tree.

    Non-string scalars and nulls carry no text and become None.
    """
    if isinstance(raw, str):
        return TextStr(value=raw)
    if isinstance(raw, list):
        return TextSeq(items=[text_value_from_json(item) for item in raw])
    if isinstance(raw, dict):
        return TextKeyed(
            entries={str(key): text_value_from_json(item) for key, item in raw.items()}
        )
    return None


class ContainerNode(BaseModel):
    """A schema node whose content is a list of titled child nodes."""

    key: str | None = None
    title: str | None = None
    he_title: str | None = None
    children: list[SchemaNode] = Field(default_factory=list)

    @property
    def is_default(self) -> bool:
        return (self.key or "").lower() == DEFAULT_NODE_KEY

    @property
    def display_title(self) -> str | None:
        return _first_non_blank(self.he_title, self.title)


class LeafNode(BaseModel):
    """A schema node describing a jagged array of text.

    ``depth`` is the number of array levels; ``address_types`` and
    ``referenceable_sections`` are aligned with ``section_names``.
    """

    key: str | None = None
    title: str | None = None
    he_title: str | None = None
    section_names: list[str] = Field(default_factory=list)
    depth: int = 0
    address_types: list[str] = Field(default_factory=list)
    referenceable_sections: list[bool] = Field(default_factory=list)

    @property
    def is_default(self) -> bool:
        return (self.key or "").lower() == DEFAULT_NODE_KEY

    @property
    def display_title(self) -> str | None:
        return _first_non_blank(self.he_title, self.title)


SchemaNode = Union[ContainerNode, LeafNode]

ContainerNode.model_rebuild()


def schema_node_from_json(raw: dict[str, Any]) -> SchemaNode:
    """Convert a decoded ``schema`` object (or one of its nodes)."""
    key = _string_or_none(raw.get("key"))
    title = _string_or_none(raw.get("title"))
    he_title = _string_or_none(raw.get("heTitle"))

    if "nodes" in raw:
        children = [
            schema_node_from_json(child)
            for child in raw.get("nodes") or []
            if isinstance(child, dict)
        ]
        return ContainerNode(key=key, title=title, he_title=he_title, children=children)

    section_names = _string_list(raw.get("heSectionNames"))
    depth = _int_or_none(raw.get("depth"))
    return LeafNode(
        key=key,
        title=title,
        he_title=he_title,
        section_names=section_names,
        depth=depth if depth is not None else len(section_names),
        address_types=_string_list(raw.get("addressTypes")),
        referenceable_sections=[
            item for item in raw.get("referenceableSections") or [] if isinstance(item, bool)
        ],
    )


def _first_non_blank(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value
    return None


def _string_or_none(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and not isinstance(item, (dict, list))]


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
