"""Keyword extraction for the keyword index.

Tokens are lower-cased, split on whitespace and trimmed of punctuation;
short and numeric tokens are dropped. Indexing and querying share these
rules.
"""

from .constants import MAX_KEYWORDS, MIN_KEYWORD_LENGTH, STRIP_CHARS


def _qualifying_tokens(text: str):
    """Yield cleaned tokens that pass the length and numeric filters."""
    for raw in text.lower().split():
        token = raw.strip(STRIP_CHARS)
        if len(token) < MIN_KEYWORD_LENGTH:
            continue
        if token.isascii() and token.isdigit():
            continue
        yield token


def tokenize(text: str, limit: int | None = None) -> list[str]:
    """Return distinct qualifying tokens in first-occurrence order.

    Args:
        text: Free text to tokenize
        limit: Maximum number of tokens to keep (None = no cap)
    """
    seen: set[str] = set()
    tokens: list[str] = []
    for token in _qualifying_tokens(text):
        if token in seen:
            continue
        seen.add(token)
        tokens.append(token)
        if limit is not None and len(tokens) >= limit:
            break
    return tokens


def extract_keywords(text: str) -> list[str]:
    """Derive the keyword list stored on a node (at most MAX_KEYWORDS)."""
    return tokenize(text, limit=MAX_KEYWORDS)


def tokenize_query(text: str) -> list[str]:
    """Derive search terms from a query. Same rules as indexing, no cap."""
    return tokenize(text)
