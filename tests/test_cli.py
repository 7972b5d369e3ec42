"""Tests for CLI commands."""

import json

from click.testing import CliRunner

from kindex.cli import cli
from kindex.repository import keyword_key

from conftest import ulid_for


runner = CliRunner()


def invoke(store, *args, input=None):
    """Run the CLI against an injected store."""
    return runner.invoke(cli, list(args), obj={"store": store}, input=input)


def test_add(store):
    result = invoke(store, "add", "Redis sets make fast keyword indexes")
    assert result.exit_code == 0
    assert "Added note" in result.output
    assert len(store.list_nodes()) == 1


def test_add_json(store):
    result = invoke(store, "add", "https://example.com/docs", "--json")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["type"] == "url"
    assert data["keywords"] == ["https://example.com/docs"]


def test_add_too_short(store, backend):
    result = invoke(store, "add", "x")
    assert result.exit_code == 1
    assert "at least 3 characters" in result.output
    assert backend.keys() == []


def test_edit(populated_store):
    result = invoke(populated_store, "edit", ulid_for(1), "sqlite notes")
    assert result.exit_code == 0
    assert "Updated" in result.output
    assert populated_store.get(ulid_for(1)).keywords == ["sqlite", "notes"]


def test_edit_not_found(store):
    result = invoke(store, "edit", ulid_for(42), "anything goes")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_rm_with_yes(populated_store, backend):
    result = invoke(populated_store, "rm", ulid_for(3), "--yes")
    assert result.exit_code == 0
    assert "Deleted" in result.output
    assert keyword_key("redis") not in backend.keys()


def test_rm_confirm(populated_store):
    result = invoke(populated_store, "rm", ulid_for(3), input="y\n")
    assert result.exit_code == 0
    assert len(populated_store.list_nodes()) == 2


def test_rm_declined(populated_store):
    result = invoke(populated_store, "rm", ulid_for(3), input="n\n")
    assert result.exit_code == 1
    assert len(populated_store.list_nodes()) == 3


def test_rm_not_found(store):
    result = invoke(store, "rm", ulid_for(42), "--yes")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_rm_invalid_id(store):
    result = invoke(store, "rm", "bogus", "--yes")
    assert result.exit_code == 1
    assert "Invalid node ID" in result.output


def test_show(populated_store):
    result = invoke(populated_store, "show", ulid_for(2))
    assert result.exit_code == 0
    assert "url" in result.output
    assert "caching" in result.output


def test_ls_empty(store):
    result = invoke(store, "ls")
    assert result.exit_code == 0
    assert "No nodes found" in result.output


def test_ls_json_newest_first(populated_store):
    result = invoke(populated_store, "ls", "--json")
    assert result.exit_code == 0
    ids = [n["id"] for n in json.loads(result.output)]
    assert ids == [ulid_for(3), ulid_for(2), ulid_for(1)]


def test_ls_limit(populated_store):
    result = invoke(populated_store, "ls", "--json", "-n", "1")
    assert [n["id"] for n in json.loads(result.output)] == [ulid_for(3)]


def test_ls_table(populated_store):
    result = invoke(populated_store, "ls")
    assert result.exit_code == 0
    assert "Nodes (3 of 3)" in result.output


def test_search_json(populated_store):
    result = invoke(populated_store, "search", "fast", "--json")
    assert result.exit_code == 0
    ids = [n["id"] for n in json.loads(result.output)]
    assert ids == [ulid_for(3), ulid_for(1)]


def test_search_no_results(populated_store):
    result = invoke(populated_store, "search", "kubernetes")
    assert result.exit_code == 0
    assert "No nodes found" in result.output


def test_storage_failure_exit_code(populated_store, backend):
    backend.unavailable = True
    result = invoke(populated_store, "ls")
    assert result.exit_code == 1
    assert "Storage error" in result.output


def test_check_and_repair(populated_store, backend):
    result = invoke(populated_store, "check")
    assert result.exit_code == 0
    assert "consistent" in result.output

    backend.set_remove(keyword_key("fast"), ulid_for(1))
    result = invoke(populated_store, "check")
    assert result.exit_code == 1
    assert "missing ids" in result.output

    result = invoke(populated_store, "repair")
    assert result.exit_code == 0
    assert "Repaired index" in result.output

    result = invoke(populated_store, "repair")
    assert "Nothing to repair" in result.output


def test_memory_backend_from_options():
    """Without an injected store, the CLI builds one from its options."""
    result = runner.invoke(cli, ["--backend", "memory", "ls"], obj={})
    assert result.exit_code == 0
    assert "No nodes found" in result.output
