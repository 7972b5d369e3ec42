"""Knowledge store - orchestrates node records and the keyword index."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .backend import Backend, Batch, CommandResult
from .constants import MIN_CONTENT_LENGTH
from .errors import (
    BackendError,
    NodeNotFoundError,
    StorageFailedError,
    ValidationFailedError,
)
from .index import diff_keywords
from .models import KnowledgeNode, classify_content, generate_id, is_valid_node_id, utc_now
from .repository import (
    REGISTRY_KEY,
    keyword_key,
    node_key,
    parse_node,
    serialize_changes,
    serialize_node,
)
from .tokenizer import extract_keywords, tokenize_query

if TYPE_CHECKING:
    from .repair import RepairReport

logger = logging.getLogger(__name__)


def _validate_content(content: object) -> str:
    if not isinstance(content, str):
        raise ValidationFailedError("Content must be text.")
    if len(content) < MIN_CONTENT_LENGTH:
        raise ValidationFailedError(
            f"Content must be at least {MIN_CONTENT_LENGTH} characters."
        )
    return content


def _validate_node_id(node_id: object) -> str:
    if not is_valid_node_id(node_id):
        raise ValidationFailedError("Invalid node ID.")
    return node_id  # type: ignore[return-value]


def _sort_newest_first(nodes: list[KnowledgeNode]) -> list[KnowledgeNode]:
    # sorted() is stable with reverse=True, so ties keep retrieval order
    return sorted(nodes, key=lambda n: n.created_at, reverse=True)


class KnowledgeStore:
    """Main entry point for node operations.

    Every mutation is sent as one batch: the node record, the registry set
    and the keyword index sets it touches travel together. Batches are not
    transactional; a failure part way through can leave the index out of
    step with the records, which check() reports and repair() fixes.

    Concurrency: no coordination between callers. Two concurrent updates of
    the same node can interleave their index changes; callers must
    serialize dependent operations on one node.
    """

    def __init__(self, backend: Backend):
        self.backend = backend

    # --- Internal helpers ---

    def _submit(self, batch: Batch, operation: str) -> list[CommandResult]:
        """Submit a batch and fail if the round trip or any command failed."""
        try:
            results = batch.submit()
        except BackendError as e:
            logger.error(f"{operation} failed: {e}")
            raise StorageFailedError(f"Storage error during {operation}.") from e

        failed = [r.error for r in results if r.error is not None]
        if failed:
            logger.error(
                f"{operation}: {len(failed)} of {len(results)} commands failed "
                f"(first error: {failed[0]})"
            )
            raise StorageFailedError(f"Storage error during {operation}.") from failed[0]
        return results

    def _read_node(self, node_id: str, operation: str) -> KnowledgeNode:
        try:
            fields = self.backend.hash_get_all(node_key(node_id))
        except BackendError as e:
            logger.error(f"{operation} failed reading {node_id}: {e}")
            raise StorageFailedError(f"Storage error during {operation}.") from e

        node = parse_node(fields)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _fetch_nodes(self, node_ids: list[str], operation: str) -> list[KnowledgeNode]:
        """Read many nodes in one round trip, dropping missing/unparsable ones."""
        if not node_ids:
            return []

        batch = self.backend.batch()
        for node_id in node_ids:
            batch.hash_get_all(node_key(node_id))
        try:
            results = batch.submit()
        except BackendError as e:
            logger.error(f"{operation} failed: {e}")
            raise StorageFailedError(f"Storage error during {operation}.") from e

        nodes = []
        for node_id, (error, fields) in zip(node_ids, results):
            if error is not None:
                logger.warning(f"{operation}: could not read node {node_id}: {error}")
                continue
            node = parse_node(fields)
            if node is not None:
                nodes.append(node)
        return _sort_newest_first(nodes)

    # --- Mutations ---

    def create(self, content: str) -> KnowledgeNode:
        """Create a node and index it under each of its keywords.

        Raises:
            ValidationFailedError: If content is shorter than 3 characters
            StorageFailedError: If the batch could not be stored
        """
        content = _validate_content(content)
        node = KnowledgeNode(
            id=generate_id(),
            content=content,
            type=classify_content(content),
            created_at=utc_now(),
            keywords=extract_keywords(content),
        )

        delta = diff_keywords([], node.keywords)
        batch = self.backend.batch()
        batch.hash_set(node_key(node.id), serialize_node(node))
        batch.set_add(REGISTRY_KEY, node.id)
        for keyword in delta.to_add:
            batch.set_add(keyword_key(keyword), node.id)
        self._submit(batch, "create")

        logger.info(f"Created node {node.id} ({node.type}, {len(node.keywords)} keywords)")
        return node

    def update(self, node_id: str, content: str) -> KnowledgeNode:
        """Replace a node's content and re-index its keywords.

        Only content and keywords are rewritten; id, type and created_at
        keep their stored values.

        Raises:
            ValidationFailedError: If the id or content is malformed
            NodeNotFoundError: If no readable node exists for node_id
            StorageFailedError: If the backend failed
        """
        node_id = _validate_node_id(node_id)
        content = _validate_content(content)
        existing = self._read_node(node_id, "update")

        keywords = extract_keywords(content)
        delta = diff_keywords(existing.keywords, keywords)

        batch = self.backend.batch()
        batch.hash_set(node_key(node_id), serialize_changes(content, keywords))
        for keyword in delta.to_add:
            batch.set_add(keyword_key(keyword), node_id)
        for keyword in delta.to_remove:
            batch.set_remove(keyword_key(keyword), node_id)
        self._submit(batch, "update")

        logger.info(
            f"Updated node {node_id} (+{len(delta.to_add)}/-{len(delta.to_remove)} keywords)"
        )
        return existing.model_copy(update={"content": content, "keywords": keywords})

    def delete(self, node_id: str) -> KnowledgeNode:
        """Delete a node and remove it from every keyword index it is in.

        The stored keyword list decides which index sets are cleaned, so a
        node whose record cannot be read is reported as not found and
        nothing is written.

        Returns:
            The node as it was before deletion.

        Raises:
            ValidationFailedError: If the id is malformed
            NodeNotFoundError: If no readable node exists for node_id
            StorageFailedError: If the backend failed
        """
        node_id = _validate_node_id(node_id)
        existing = self._read_node(node_id, "delete")

        delta = diff_keywords(existing.keywords, [])
        batch = self.backend.batch()
        batch.set_remove(REGISTRY_KEY, node_id)
        for keyword in delta.to_remove:
            batch.set_remove(keyword_key(keyword), node_id)
        batch.delete(node_key(node_id))
        self._submit(batch, "delete")

        logger.info(f"Deleted node {node_id}")
        return existing

    # --- Reads ---

    def get(self, node_id: str) -> KnowledgeNode:
        """Fetch a single node.

        Raises:
            ValidationFailedError: If the id is malformed
            NodeNotFoundError: If no readable node exists for node_id
            StorageFailedError: If the backend failed
        """
        return self._read_node(_validate_node_id(node_id), "get")

    def list_nodes(self) -> list[KnowledgeNode]:
        """All registered nodes, newest first.

        Registry entries whose record is missing or unparsable are skipped.
        """
        try:
            node_ids = list(self.backend.set_members(REGISTRY_KEY))
        except BackendError as e:
            logger.error(f"list failed: {e}")
            raise StorageFailedError("Storage error during list.") from e
        return self._fetch_nodes(node_ids, "list")

    def search(self, query: str) -> list[KnowledgeNode]:
        """Nodes sharing at least one keyword with the query, newest first.

        A query without qualifying tokens returns [] without touching
        storage. Matches are not ranked beyond recency.
        """
        terms = tokenize_query(query or "")
        if not terms:
            return []

        try:
            node_ids = list(self.backend.set_union(keyword_key(t) for t in terms))
        except BackendError as e:
            logger.error(f"search failed: {e}")
            raise StorageFailedError("Storage error during search.") from e

        logger.debug(f"search {terms!r}: {len(node_ids)} candidate ids")
        return self._fetch_nodes(node_ids, "search")

    # --- Consistency ---

    def check(self) -> list[str]:
        """Report drift between node records, registry and keyword index."""
        from .repair import check_consistency

        try:
            return check_consistency(self.backend)
        except BackendError as e:
            logger.error(f"check failed: {e}")
            raise StorageFailedError("Storage error during check.") from e

    def repair(self) -> RepairReport:
        """Rebuild registry and keyword index from the node records."""
        from .repair import rebuild_index

        try:
            report = rebuild_index(self.backend)
        except BackendError as e:
            logger.error(f"repair failed: {e}")
            raise StorageFailedError("Storage error during repair.") from e

        if report.failed_commands:
            raise StorageFailedError(
                f"Repair incomplete: {report.failed_commands} commands failed."
            )
        return report
