"""Tests for data models."""

from seforim_index.models import (
    AltNode,
    Book,
    ConnectionType,
    ContainerNode,
    LeafNode,
    TextKeyed,
    TextSeq,
    TextStr,
)
from seforim_index.models.schema import (
    is_trivially_empty,
    schema_node_from_json,
    text_value_from_json,
)


class TestBook:
    def test_book_defaults(self) -> None:
        book = Book(category_id=1, he_title="שולחן ערוך")
        assert book.id == 0
        assert book.order == 999.0
        assert book.is_base_book is False
        assert book.authors == []

    def test_book_serialization(self) -> None:
        book = Book(category_id=1, he_title="טור", authors=["רבי יעקב בן אשר"])
        restored = Book(**book.model_dump())
        assert restored == book


class TestTextValue:
    def test_from_json(self) -> None:
        value = text_value_from_json({"Intro": ["a", None, 3], "": [["b"]]})
        assert isinstance(value, TextKeyed)
        assert value.entries["Intro"] == TextSeq(items=[TextStr(value="a"), None, None])
        assert isinstance(value.entries[""], TextSeq)

    def test_scalars_carry_no_text(self) -> None:
        assert text_value_from_json(5) is None
        assert text_value_from_json(None) is None

    def test_trivially_empty(self) -> None:
        assert is_trivially_empty(None)
        assert is_trivially_empty(TextStr(value="  "))
        assert is_trivially_empty(text_value_from_json([[], ["", None]]))
        assert is_trivially_empty(TextKeyed())
        assert not is_trivially_empty(text_value_from_json([[], ["x"]]))


class TestSchemaNode:
    def test_leaf(self) -> None:
        node = schema_node_from_json(
            {"key": "default", "heSectionNames": ["סימן", "סעיף"], "addressTypes": ["Siman", "Integer"]}
        )
        assert isinstance(node, LeafNode)
        assert node.depth == 2
        assert node.is_default
        assert node.display_title is None

    def test_container(self) -> None:
        node = schema_node_from_json(
            {"title": "Tur", "heTitle": "טור", "nodes": [{"title": "A", "depth": 1}, "junk"]}
        )
        assert isinstance(node, ContainerNode)
        assert node.display_title == "טור"
        assert len(node.children) == 1
        assert node.children[0].display_title == "A"


class TestAltNode:
    def test_flags(self) -> None:
        node = AltNode(title=" ", address_types=["Talmud"], refs=["Berakhot 2a"])
        assert not node.has_title
        assert node.has_own_refs
        assert node.has_address_type("talmud", "daf")
        assert not AltNode().has_own_refs


class TestConnectionType:
    def test_directional(self) -> None:
        assert ConnectionType.COMMENTARY.is_directional
        assert ConnectionType.TARGUM.is_directional
        assert not ConnectionType.REFERENCE.is_directional
        assert not ConnectionType.OTHER.is_directional
