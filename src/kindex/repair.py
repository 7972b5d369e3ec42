"""Consistency check and index rebuild.

Batches are not transactional, so a failure part way through a mutation can
leave the registry or a keyword set out of step with the node records. Node
records are the source of truth: the registry should list exactly the ids
with a record, and keyword:<k> should hold exactly the ids whose stored
keywords contain k.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .backend import Backend
from .constants import KEYWORD_KEY_PREFIX, NODE_KEY_PREFIX
from .errors import BackendError
from .models import KnowledgeNode
from .repository import REGISTRY_KEY, keyword_key, node_key, parse_node

logger = logging.getLogger(__name__)


@dataclass
class _Snapshot:
    """What is currently stored, read in a few round trips."""

    registry: set[str] = field(default_factory=set)
    nodes: dict[str, KnowledgeNode] = field(default_factory=dict)  # id -> node
    missing: set[str] = field(default_factory=set)      # registered, no record
    unparsable: set[str] = field(default_factory=set)   # record exists, cannot parse
    index: dict[str, set[str]] = field(default_factory=dict)  # keyword -> ids

    def expected_index(self) -> dict[str, set[str]]:
        expected: dict[str, set[str]] = {}
        for node_id, node in self.nodes.items():
            for keyword in node.keywords:
                expected.setdefault(keyword, set()).add(node_id)
        return expected

    @property
    def orphans(self) -> set[str]:
        """Ids with a readable record but no registry membership."""
        return set(self.nodes) - self.registry


@dataclass
class RepairReport:
    """Changes made by rebuild_index()."""

    registered: list[str] = field(default_factory=list)
    unregistered: list[str] = field(default_factory=list)
    index_added: int = 0
    index_removed: int = 0
    unparsable: list[str] = field(default_factory=list)
    failed_commands: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.registered or self.unregistered or self.index_added or self.index_removed
        )

    def to_dict(self) -> dict:
        return {
            "registered": self.registered,
            "unregistered": self.unregistered,
            "index_added": self.index_added,
            "index_removed": self.index_removed,
            "unparsable": self.unparsable,
            "failed_commands": self.failed_commands,
        }


def _read_snapshot(backend: Backend) -> _Snapshot:
    snapshot = _Snapshot(registry=backend.set_members(REGISTRY_KEY))

    record_ids = {key[len(NODE_KEY_PREFIX):] for key in backend.scan_keys(f"{NODE_KEY_PREFIX}*")}
    node_ids = sorted(snapshot.registry | record_ids)
    keywords = [key[len(KEYWORD_KEY_PREFIX):] for key in backend.scan_keys(f"{KEYWORD_KEY_PREFIX}*")]

    batch = backend.batch()
    for node_id in node_ids:
        batch.hash_get_all(node_key(node_id))
    for keyword in keywords:
        batch.set_members(keyword_key(keyword))
    results = batch.submit() if len(batch) else []

    for node_id, (error, fields) in zip(node_ids, results[: len(node_ids)]):
        if error is not None:
            raise BackendError(f"could not read {node_key(node_id)}: {error}")
        if not fields:
            snapshot.missing.add(node_id)
            continue
        node = parse_node(fields)
        if node is None or node.id != node_id:
            snapshot.unparsable.add(node_id)
        else:
            snapshot.nodes[node_id] = node

    for keyword, (error, members) in zip(keywords, results[len(node_ids):]):
        if error is not None:
            raise BackendError(f"could not read {keyword_key(keyword)}: {error}")
        snapshot.index[keyword] = set(members or ())

    return snapshot


def check_consistency(backend: Backend) -> list[str]:
    """Validate registry and keyword index against node records.

    Returns a list of problems; an empty list means the store is consistent.
    """
    snapshot = _read_snapshot(backend)
    errors: list[str] = []

    for node_id in sorted(snapshot.missing & snapshot.registry):
        errors.append(f"registry lists {node_id} but its record is missing")
    for node_id in sorted(snapshot.unparsable):
        errors.append(f"record {node_key(node_id)} cannot be parsed")
    for node_id in sorted(snapshot.orphans):
        errors.append(f"record {node_key(node_id)} is not in the registry")

    expected = snapshot.expected_index()
    for keyword in sorted(set(expected) | set(snapshot.index)):
        want = expected.get(keyword, set())
        have = snapshot.index.get(keyword, set())
        if want - have:
            errors.append(f"{keyword_key(keyword)} missing ids: {sorted(want - have)}")
        if have - want:
            errors.append(f"{keyword_key(keyword)} has stale ids: {sorted(have - want)}")

    return errors


def rebuild_index(backend: Backend) -> RepairReport:
    """Bring registry and keyword sets in line with the node records.

    Readable records are registered and indexed under their keywords.
    Registry entries without a record are dropped. Unparsable records are
    left in place for inspection, reported, and removed from keyword sets.
    """
    snapshot = _read_snapshot(backend)
    report = RepairReport(unparsable=sorted(snapshot.unparsable))

    batch = backend.batch()
    for node_id in sorted(snapshot.orphans):
        batch.set_add(REGISTRY_KEY, node_id)
        report.registered.append(node_id)
    for node_id in sorted(snapshot.missing & snapshot.registry):
        batch.set_remove(REGISTRY_KEY, node_id)
        report.unregistered.append(node_id)

    expected = snapshot.expected_index()
    for keyword in sorted(set(expected) | set(snapshot.index)):
        want = expected.get(keyword, set())
        have = snapshot.index.get(keyword, set())
        for node_id in sorted(want - have):
            batch.set_add(keyword_key(keyword), node_id)
            report.index_added += 1
        for node_id in sorted(have - want):
            batch.set_remove(keyword_key(keyword), node_id)
            report.index_removed += 1

    if len(batch):
        results = batch.submit()
        report.failed_commands = sum(1 for r in results if r.error is not None)

    if report.changed:
        logger.warning(
            f"Repaired index: +{len(report.registered)}/-{len(report.unregistered)} registry, "
            f"+{report.index_added}/-{report.index_removed} keyword entries"
        )
    return report
