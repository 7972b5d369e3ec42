"""Tests for keyword delta computation."""

from kindex.index import KeywordDelta, diff_keywords


def test_identical_sets_have_empty_delta():
    for keywords in ([], ["redis"], ["redis", "sets", "fast"]):
        delta = diff_keywords(keywords, list(keywords))
        assert delta == ([], [])
        assert delta.is_empty


def test_create_adds_everything():
    delta = diff_keywords([], ["fast", "databases"])
    assert delta.to_add == ["fast", "databases"]
    assert delta.to_remove == []


def test_delete_removes_everything():
    delta = diff_keywords(["fast", "databases"], [])
    assert delta.to_add == []
    assert delta.to_remove == ["fast", "databases"]


def test_partial_overlap():
    delta = diff_keywords(["postgres", "fast", "databases"], ["fast", "redis", "caching"])
    assert delta == KeywordDelta(to_add=["redis", "caching"], to_remove=["postgres", "databases"])


def test_order_of_input_is_irrelevant_to_membership():
    delta = diff_keywords(["b", "a"], ["a", "b"])
    assert delta.is_empty


def test_duplicates_in_input_are_collapsed():
    delta = diff_keywords(["old", "old"], ["new", "new", "new"])
    assert delta.to_add == ["new"]
    assert delta.to_remove == ["old"]


def test_accepts_any_iterable():
    delta = diff_keywords(iter({"kept", "gone"}), (k for k in ["kept", "added"]))
    assert delta.to_add == ["added"]
    assert delta.to_remove == ["gone"]
