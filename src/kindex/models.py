"""Core data models for kindex.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from ulid import ULID

from .constants import URL_PREFIX


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


def normalize_timestamp(dt: datetime) -> datetime:
    """Convert to UTC and truncate to milliseconds.

    Naive values are taken as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def utc_now() -> datetime:
    """Get current UTC timestamp, truncated to milliseconds.

    Stored timestamps carry millisecond precision, so anything finer would
    not survive a write/read cycle.
    """
    now = datetime.now(timezone.utc)
    return normalize_timestamp(now)


def is_valid_node_id(value: object) -> bool:
    """Check whether value looks like a node ID (ULID or UUID string)."""
    if not isinstance(value, str) or not value:
        return False
    try:
        ULID.from_str(value)
        return True
    except ValueError:
        pass
    try:
        uuid.UUID(value)
        return True
    except ValueError:
        return False


NodeType = Literal[
    "note",  # free text
    "url",   # content starting with http
]


def classify_content(content: str) -> NodeType:
    """Derive the node type from its content."""
    return "url" if content.startswith(URL_PREFIX) else "note"


class KnowledgeNode(BaseModel):
    """A stored note or link with its derived keywords."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    content: str
    type: NodeType = "note"
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    keywords: list[str] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        # Stored timestamps are UTC with millisecond precision
        return normalize_timestamp(value)

    def to_summary(self) -> dict:
        """Return a compact summary of this node."""
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "keywords": list(self.keywords),
        }
