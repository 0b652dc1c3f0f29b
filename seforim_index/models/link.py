"""Cross-book link models."""

from enum import Enum

from pydantic import BaseModel


class ConnectionType(str, Enum):
    """Relationship between two linked lines."""

    COMMENTARY = "COMMENTARY"
    TARGUM = "TARGUM"
    REFERENCE = "REFERENCE"
    SOURCE = "SOURCE"
    OTHER = "OTHER"

    @classmethod
    def from_label(cls, label: str) -> "ConnectionType":
        """Map a link-table label ("commentary", "Targum", ...) to a type."""
        return {
            "commentary": cls.COMMENTARY,
            "targum": cls.TARGUM,
            "reference": cls.REFERENCE,
        }.get(label.strip().lower(), cls.OTHER)

    @property
    def is_directional(self) -> bool:
        return self in (ConnectionType.COMMENTARY, ConnectionType.TARGUM)


class Link(BaseModel):
    """A directed line-to-line link."""

    source_book_id: int
    target_book_id: int
    source_line_id: int
    target_line_id: int
    connection_type: ConnectionType
