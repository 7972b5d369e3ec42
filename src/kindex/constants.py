"""Shared constants for kindex.

Key names are part of the persisted layout and must not change, otherwise
existing data becomes unreachable.
"""

# --- Storage keys ---
NODE_KEY_PREFIX = "node:"
KEYWORD_KEY_PREFIX = "keyword:"
REGISTRY_KEY = "nodes"

# --- Node content ---
MIN_CONTENT_LENGTH = 3
URL_PREFIX = "http"

# --- Tokenizer ---
MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 3
STRIP_CHARS = ".,!?"

# --- Listing ---
DEFAULT_LIST_LIMIT = 50
CONTENT_PREVIEW_CHARS = 60

# --- Backend ---
DEFAULT_URL = "redis://localhost:6379/0"
DEFAULT_SOCKET_TIMEOUT = 5.0

# --- Time ---
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000  # 30 days
SECONDS_PER_YEAR = 31536000  # 365 days
