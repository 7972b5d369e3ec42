#!/usr/bin/env python3
"""Seed script to populate a kindex store with sample nodes.

Usage:
    KINDEX_URL=redis://localhost:6379/0 python scripts/seed.py

    # Or with the default URL:
    python scripts/seed.py
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kindex.backend import build_backend
from kindex.config import load_settings
from kindex.errors import KindexError
from kindex.store import KnowledgeStore

SAMPLE_NODES = [
    # --- Concepts ---
    "Event sourcing derives state from an append-only log of events",
    "A keyword index maps each token to the set of nodes that mention it",
    "Redis sets give constant time membership checks and cheap unions",
    "Pipelines send many commands in one round trip without a transaction",
    # --- Decisions ---
    "Search uses OR semantics: any matching keyword is enough",
    "Node ids are ULIDs so they sort by creation time",
    # --- Links ---
    "https://redis.io/docs/latest/develop/data-types/sets/",
    "https://docs.pydantic.dev/latest/concepts/models/",
    "https://modelcontextprotocol.io/introduction",
]


def seed(store: KnowledgeStore) -> int:
    """Create the sample nodes. Returns the number created."""
    created = 0
    for content in SAMPLE_NODES:
        node = store.create(content)
        print(f"  + {node.type:<4} {node.id}  {content[:50]}")
        created += 1
    return created


def main() -> None:
    settings = load_settings()
    print(f"Seeding {settings.redacted_url()}")

    backend = build_backend(settings)
    try:
        store = KnowledgeStore(backend)
        count = seed(store)
        problems = store.check()
    except KindexError as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        backend.close()

    print(f"\nCreated {count} nodes.")
    if problems:
        print(f"Index has {len(problems)} problems; run `kindex repair`.")
    else:
        print("Index is consistent.")


if __name__ == "__main__":
    main()
