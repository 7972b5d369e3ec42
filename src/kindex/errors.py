"""Failure types raised by the knowledge store."""


class KindexError(Exception):
    """Base class for failures reported to callers."""

    reason = "error"


class ValidationFailedError(KindexError):
    """Caller-supplied content or id rejected before touching storage."""

    reason = "validation_failed"


class NodeNotFoundError(KindexError):
    """No readable node record exists for the requested id."""

    reason = "not_found"

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class StorageFailedError(KindexError):
    """The backend round trip failed or a batched command reported an error."""

    reason = "storage_failed"


class BackendError(Exception):
    """Raised by backend implementations when a round trip fails."""
