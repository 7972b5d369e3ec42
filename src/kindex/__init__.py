"""kindex - keyword-indexed knowledge notes on a key-value store.

Public API:
- KnowledgeStore: create/update/delete/get/list/search nodes
- KnowledgeNode: the stored note or URL
- MemoryBackend, RedisBackend, build_backend: storage backends
- extract_keywords, diff_keywords: tokenizer and index delta
"""

from .backend import Backend, MemoryBackend, RedisBackend, build_backend
from .config import Settings, load_settings
from .errors import (
    KindexError,
    NodeNotFoundError,
    StorageFailedError,
    ValidationFailedError,
)
from .index import KeywordDelta, diff_keywords
from .models import KnowledgeNode
from .store import KnowledgeStore
from .tokenizer import extract_keywords, tokenize_query

__version__ = "0.1.0"

__all__ = [
    "Backend",
    "KeywordDelta",
    "KindexError",
    "KnowledgeNode",
    "KnowledgeStore",
    "MemoryBackend",
    "NodeNotFoundError",
    "RedisBackend",
    "Settings",
    "StorageFailedError",
    "ValidationFailedError",
    "build_backend",
    "diff_keywords",
    "extract_keywords",
    "load_settings",
    "tokenize_query",
]
