"""Shared test fixtures and helpers for kindex tests."""

from datetime import datetime, timedelta, timezone

import pytest

from kindex.backend import MemoryBackend
from kindex.models import KnowledgeNode, classify_content
from kindex.repository import REGISTRY_KEY, keyword_key, node_key, serialize_node
from kindex.store import KnowledgeStore
from kindex.tokenizer import extract_keywords

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


# --- Fixtures ---


@pytest.fixture
def backend():
    """Provide an empty in-memory backend."""
    return MemoryBackend()


@pytest.fixture
def store(backend):
    """Provide a KnowledgeStore over the in-memory backend."""
    return KnowledgeStore(backend)


@pytest.fixture
def put_node(backend):
    """Provide a writer that stores a node the way create() lays it out.

    Lets tests control ids and created_at instead of relying on the clock.
    """

    def _put(node: KnowledgeNode) -> KnowledgeNode:
        backend.hash_set(node_key(node.id), serialize_node(node))
        backend.set_add(REGISTRY_KEY, node.id)
        for keyword in node.keywords:
            backend.set_add(keyword_key(keyword), node.id)
        return node

    return _put


@pytest.fixture
def populated_store(store, put_node):
    """Provide a store with three nodes of known, distinct ages.

    'postgres' is oldest, 'redis' is newest.
    """
    put_node(make_node(ulid_for(1), "Postgres tuning for fast databases", BASE_TIME))
    put_node(make_node(ulid_for(2), "https://example.com/article about caching", BASE_TIME + timedelta(hours=1)))
    put_node(make_node(ulid_for(3), "Redis sets make fast keyword indexes", BASE_TIME + timedelta(hours=2)))
    return store


# --- Helper Functions (not fixtures) ---


def ulid_for(n: int) -> str:
    """A valid, predictable ULID string for test node n."""
    return f"01J{n:023d}"


def make_node(id: str, content: str, created_at: datetime) -> KnowledgeNode:
    """Build a node the way the store would, with an explicit id and timestamp."""
    return KnowledgeNode(
        id=id,
        content=content,
        type=classify_content(content),
        created_at=created_at,
        keywords=extract_keywords(content),
    )
