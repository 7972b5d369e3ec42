"""Tests for keyword extraction."""

from kindex.constants import MAX_KEYWORDS
from kindex.tokenizer import extract_keywords, tokenize, tokenize_query


def test_empty_text():
    """Empty or whitespace-only input yields no keywords."""
    assert extract_keywords("") == []
    assert extract_keywords("   \n\t ") == []


def test_lowercases_and_splits_on_whitespace():
    assert extract_keywords("Fast\tDatabases\n\nRULE") == ["fast", "databases", "rule"]


def test_drops_short_tokens():
    """Tokens of two characters or fewer are not keywords."""
    assert extract_keywords("a to the sea of data") == ["the", "sea", "data"]


def test_drops_numeric_tokens():
    assert extract_keywords("version 2024 and 123456 builds 3d") == ["version", "and", "builds"]


def test_only_ascii_digits_count_as_numeric():
    assert extract_keywords("area 123 \u00b2\u00b3\u2074 \u0661\u0662\u0663") == ["area", "\u00b2\u00b3\u2074", "\u0661\u0662\u0663"]


def test_strips_edge_punctuation():
    assert extract_keywords("Hello, world! Really? Yes.") == ["hello", "world", "really", "yes"]


def test_inner_punctuation_is_kept():
    assert extract_keywords("node.js e.g. co,op") == ["node.js", "e.g", "co,op"]


def test_length_checked_after_strip():
    """'ok!' is three characters but only two after stripping."""
    assert extract_keywords("ok! fine.") == ["fine"]


def test_numeric_checked_after_strip():
    assert extract_keywords("costs 100. total") == ["costs", "total"]


def test_deduplicates_in_first_occurrence_order():
    assert extract_keywords("Redis redis REDIS sets Sets redis.") == ["redis", "sets"]


def test_caps_at_max_keywords():
    words = [f"word{chr(ord('a') + i)}" for i in range(15)]
    keywords = extract_keywords(" ".join(words))
    assert len(keywords) == MAX_KEYWORDS
    assert keywords == words[:MAX_KEYWORDS]


def test_cap_counts_distinct_tokens():
    """Duplicates before the cap do not use up keyword slots."""
    text = "alpha alpha alpha beta gamma delta epsilon zeta theta iota kappa lambda omega"
    keywords = extract_keywords(text)
    assert keywords[0] == "alpha"
    assert "lambda" in keywords
    assert "omega" not in keywords
    assert len(keywords) == MAX_KEYWORDS


def test_url_is_one_token():
    keywords = extract_keywords("Check out https://example.com for fast databases")
    assert keywords == ["check", "out", "https://example.com", "for", "fast", "databases"]


def test_extracted_keywords_respect_all_rules():
    """No duplicates, no short tokens, no numeric tokens, at most 10."""
    samples = [
        "The quick brown fox jumps over the lazy dog 42 times, again and again!",
        "1 22 333 4444 ab abc abcd abc. ABC! abc?",
        "?!. ... ,,, hi!! there?? 007 agent",
        "one two three four five six seven eight nine ten eleven twelve",
    ]
    for text in samples:
        keywords = extract_keywords(text)
        assert len(keywords) == len(set(keywords))
        assert len(keywords) <= MAX_KEYWORDS
        for keyword in keywords:
            assert len(keyword) > 2
            assert not keyword.isdigit()


def test_tokenize_query_has_no_cap():
    words = [f"term{chr(ord('a') + i)}" for i in range(14)]
    assert tokenize_query(" ".join(words)) == words


def test_tokenize_query_uses_indexing_rules():
    assert tokenize_query("Fast, db? DATABASES 99") == ["fast", "databases"]


def test_tokenize_limit():
    assert tokenize("alpha beta gamma", limit=2) == ["alpha", "beta"]
    assert tokenize("alpha beta gamma", limit=None) == ["alpha", "beta", "gamma"]
