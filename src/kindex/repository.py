"""Node record layout and its mapping to backend hashes.

Backend hash fields are flat text values, so keywords are stored as a JSON
array string and the timestamp as ISO-8601 text.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Mapping

from pydantic import ValidationError

from .constants import KEYWORD_KEY_PREFIX, NODE_KEY_PREFIX, REGISTRY_KEY
from .models import KnowledgeNode

logger = logging.getLogger(__name__)

# The model has defaults for these; a stored record must still carry them.
_REQUIRED_FIELDS = ("id", "content", "type", "createdAt")

__all__ = [
    "REGISTRY_KEY",
    "node_key",
    "keyword_key",
    "format_timestamp",
    "serialize_node",
    "serialize_changes",
    "parse_node",
]


def node_key(node_id: str) -> str:
    return f"{NODE_KEY_PREFIX}{node_id}"


def keyword_key(keyword: str) -> str:
    return f"{KEYWORD_KEY_PREFIX}{keyword}"


def format_timestamp(dt: datetime) -> str:
    """Format a timestamp as UTC ISO-8601 with millisecond precision and Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_node(node: KnowledgeNode) -> dict[str, str]:
    """Convert a node into the flat field mapping written to node:<id>."""
    return {
        "id": node.id,
        "content": node.content,
        "type": node.type,
        "createdAt": format_timestamp(node.created_at),
        "keywords": json.dumps(list(node.keywords)),
    }


def serialize_changes(content: str, keywords: list[str]) -> dict[str, str]:
    """Fields rewritten by an update. id, type and createdAt stay untouched."""
    return {
        "content": content,
        "keywords": json.dumps(list(keywords)),
    }


def parse_node(fields: Mapping[str, str] | None) -> KnowledgeNode | None:
    """Reconstruct a node from its stored fields.

    Returns None when the record is missing or empty, and also when it
    cannot be parsed. Parse failures point at corrupted data and are logged;
    callers treat them the same as a missing node.
    """
    if not fields:
        return None

    try:
        missing = [name for name in _REQUIRED_FIELDS if not fields.get(name)]
        if missing:
            raise ValueError(f"missing fields: {', '.join(missing)}")
        keywords = json.loads(fields.get("keywords") or "[]")
        if not isinstance(keywords, list):
            raise ValueError(f"keywords must be a JSON array, got {type(keywords).__name__}")
        data = {key: value for key, value in fields.items() if key != "keywords"}
        return KnowledgeNode.model_validate({**data, "keywords": keywords})
    except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
        logger.warning(f"Skipping unparsable node {fields.get('id', '?')}: {e}")
        return None
