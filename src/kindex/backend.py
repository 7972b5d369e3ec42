"""Storage backend abstraction for the knowledge store.

The store only needs hashes, sets and a way to send several commands in one
round trip. Two implementations are provided:

- MemoryBackend: in-process dicts and sets, with failure injection for tests
- RedisBackend: redis-py client (Redis or DragonflyDB)

A batch sends its commands together but gives no atomicity: each command
succeeds or fails on its own and nothing is rolled back.
"""

from __future__ import annotations

import fnmatch
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Iterable, NamedTuple

import redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from .constants import DEFAULT_SOCKET_TIMEOUT
from .errors import BackendError

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class CommandResult(NamedTuple):
    """Outcome of one batched command."""

    error: Exception | None
    result: Any


class Batch(ABC):
    """Accumulates commands and submits them as a single round trip."""

    @abstractmethod
    def hash_set(self, key: str, fields: dict[str, str]) -> "Batch":
        pass

    @abstractmethod
    def hash_get_all(self, key: str) -> "Batch":
        pass

    @abstractmethod
    def set_add(self, key: str, member: str) -> "Batch":
        pass

    @abstractmethod
    def set_remove(self, key: str, member: str) -> "Batch":
        pass

    @abstractmethod
    def set_members(self, key: str) -> "Batch":
        pass

    @abstractmethod
    def delete(self, key: str) -> "Batch":
        pass

    @abstractmethod
    def submit(self) -> list[CommandResult]:
        """Send all queued commands.

        Returns one CommandResult per command, in submission order.

        Raises:
            BackendError: If the round trip itself failed
        """

    @abstractmethod
    def __len__(self) -> int:
        pass


class Backend(ABC):
    """Hash, set and batch primitives consumed by the knowledge store."""

    @abstractmethod
    def hash_set(self, key: str, fields: dict[str, str]) -> None:
        pass

    @abstractmethod
    def hash_get_all(self, key: str) -> dict[str, str]:
        """Return all fields of a hash ({} if the key does not exist)."""

    @abstractmethod
    def set_add(self, key: str, member: str) -> None:
        pass

    @abstractmethod
    def set_remove(self, key: str, member: str) -> None:
        pass

    @abstractmethod
    def set_members(self, key: str) -> set[str]:
        pass

    @abstractmethod
    def set_union(self, keys: Iterable[str]) -> set[str]:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def scan_keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob-style pattern."""

    @abstractmethod
    def batch(self) -> Batch:
        pass

    def close(self) -> None:
        """Release the underlying connection, if any."""


# ─────────────────────────────────────────────────────────────────────────────
# In-memory backend
# ─────────────────────────────────────────────────────────────────────────────


class _WrongTypeError(Exception):
    """Operation against a key holding the wrong kind of value."""


class MemoryBackend(Backend):
    """In-process backend with Redis-like hash and set semantics.

    Failure injection:
    - fail_on: callable(command, key) -> bool; matching batched commands
      report an error instead of executing
    - unavailable: when True, every round trip raises BackendError
    """

    def __init__(self):
        self._data: dict[str, dict[str, str] | set[str]] = {}
        self.fail_on: Callable[[str, str], bool] | None = None
        self.unavailable = False
        self.round_trips = 0

    # --- internal helpers ---

    def _round_trip(self) -> None:
        if self.unavailable:
            raise BackendError("backend unavailable")
        self.round_trips += 1

    def _hash(self, key: str, create: bool = False) -> dict[str, str] | None:
        value = self._data.get(key)
        if value is None:
            if create:
                value = self._data[key] = {}
            return value
        if not isinstance(value, dict):
            raise _WrongTypeError(f"WRONGTYPE {key} does not hold a hash")
        return value

    def _set(self, key: str, create: bool = False) -> set[str] | None:
        value = self._data.get(key)
        if value is None:
            if create:
                value = self._data[key] = set()
            return value
        if not isinstance(value, set):
            raise _WrongTypeError(f"WRONGTYPE {key} does not hold a set")
        return value

    def _execute(self, command: str, key: str, *args: Any) -> Any:
        """Run one command against local state (no round trip accounting)."""
        if command == "hash_set":
            self._hash(key, create=True).update(args[0])
            return len(args[0])
        if command == "hash_get_all":
            return dict(self._hash(key) or {})
        if command == "set_add":
            members = self._set(key, create=True)
            added = args[0] not in members
            members.add(args[0])
            return int(added)
        if command == "set_remove":
            members = self._set(key)
            if not members or args[0] not in members:
                return 0
            members.discard(args[0])
            if not members:
                del self._data[key]
            return 1
        if command == "set_members":
            return set(self._set(key) or ())
        if command == "delete":
            return int(self._data.pop(key, None) is not None)
        raise ValueError(f"Unknown command: {command}")

    def _direct(self, command: str, key: str, *args: Any) -> Any:
        self._round_trip()
        try:
            return self._execute(command, key, *args)
        except _WrongTypeError as e:
            raise BackendError(str(e)) from e

    # --- primitives ---

    def hash_set(self, key: str, fields: dict[str, str]) -> None:
        self._direct("hash_set", key, dict(fields))

    def hash_get_all(self, key: str) -> dict[str, str]:
        return self._direct("hash_get_all", key)

    def set_add(self, key: str, member: str) -> None:
        self._direct("set_add", key, member)

    def set_remove(self, key: str, member: str) -> None:
        self._direct("set_remove", key, member)

    def set_members(self, key: str) -> set[str]:
        return self._direct("set_members", key)

    def set_union(self, keys: Iterable[str]) -> set[str]:
        self._round_trip()
        result: set[str] = set()
        try:
            for key in keys:
                result |= self._set(key) or set()
        except _WrongTypeError as e:
            raise BackendError(str(e)) from e
        return result

    def delete(self, key: str) -> None:
        self._direct("delete", key)

    def scan_keys(self, pattern: str) -> list[str]:
        self._round_trip()
        return sorted(key for key in self._data if fnmatch.fnmatchcase(key, pattern))

    def batch(self) -> "MemoryBatch":
        return MemoryBatch(self)

    # --- test helpers ---

    def keys(self) -> list[str]:
        """All keys currently stored (no round trip)."""
        return sorted(self._data)

    def snapshot(self) -> dict[str, dict[str, str] | set[str]]:
        """Deep copy of the stored data (no round trip)."""
        return {
            key: dict(value) if isinstance(value, dict) else set(value)
            for key, value in self._data.items()
        }


class MemoryBatch(Batch):
    """Batch for MemoryBackend. Commands run in order on submit."""

    def __init__(self, backend: MemoryBackend):
        self._backend = backend
        self._commands: list[tuple[str, str, tuple]] = []

    def _queue(self, command: str, key: str, *args: Any) -> "MemoryBatch":
        self._commands.append((command, key, args))
        return self

    def hash_set(self, key: str, fields: dict[str, str]) -> "MemoryBatch":
        return self._queue("hash_set", key, dict(fields))

    def hash_get_all(self, key: str) -> "MemoryBatch":
        return self._queue("hash_get_all", key)

    def set_add(self, key: str, member: str) -> "MemoryBatch":
        return self._queue("set_add", key, member)

    def set_remove(self, key: str, member: str) -> "MemoryBatch":
        return self._queue("set_remove", key, member)

    def set_members(self, key: str) -> "MemoryBatch":
        return self._queue("set_members", key)

    def delete(self, key: str) -> "MemoryBatch":
        return self._queue("delete", key)

    def submit(self) -> list[CommandResult]:
        self._backend._round_trip()
        results: list[CommandResult] = []
        for command, key, args in self._commands:
            fail_on = self._backend.fail_on
            if fail_on is not None and fail_on(command, key):
                results.append(CommandResult(BackendError(f"injected failure: {command} {key}"), None))
                continue
            try:
                results.append(CommandResult(None, self._backend._execute(command, key, *args)))
            except _WrongTypeError as e:
                results.append(CommandResult(BackendError(str(e)), None))
        self._commands = []
        return results

    def __len__(self) -> int:
        return len(self._commands)


# ─────────────────────────────────────────────────────────────────────────────
# Redis backend
# ─────────────────────────────────────────────────────────────────────────────


class RedisBackend(Backend):
    """Backend over a redis-py client.

    The client must be created with decode_responses=True so hash fields and
    set members come back as str.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        socket_timeout: float = DEFAULT_SOCKET_TIMEOUT,
        retries: int = 3,
    ) -> "RedisBackend":
        """Create a backend from a redis:// URL with retry on connection errors."""
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry=Retry(ExponentialBackoff(), retries),
            retry_on_error=[redis.ConnectionError, redis.TimeoutError],
        )
        return cls(client)

    def _call(self, name: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._client, name)(*args, **kwargs)
        except redis.RedisError as e:
            raise BackendError(f"{name} failed: {e}") from e

    def hash_set(self, key: str, fields: dict[str, str]) -> None:
        self._call("hset", key, mapping=fields)

    def hash_get_all(self, key: str) -> dict[str, str]:
        return self._call("hgetall", key) or {}

    def set_add(self, key: str, member: str) -> None:
        self._call("sadd", key, member)

    def set_remove(self, key: str, member: str) -> None:
        self._call("srem", key, member)

    def set_members(self, key: str) -> set[str]:
        return set(self._call("smembers", key) or ())

    def set_union(self, keys: Iterable[str]) -> set[str]:
        keys = list(keys)
        if not keys:
            return set()
        return set(self._call("sunion", keys) or ())

    def delete(self, key: str) -> None:
        self._call("delete", key)

    def scan_keys(self, pattern: str) -> list[str]:
        try:
            return sorted(self._client.scan_iter(match=pattern))
        except redis.RedisError as e:
            raise BackendError(f"scan failed: {e}") from e

    def batch(self) -> "RedisBatch":
        return RedisBatch(self._client.pipeline(transaction=False))

    def close(self) -> None:
        self._client.close()


class RedisBatch(Batch):
    """Non-transactional pipeline: one round trip, per-command outcomes."""

    def __init__(self, pipeline: redis.client.Pipeline):
        self._pipeline = pipeline
        self._count = 0

    def _queued(self) -> "RedisBatch":
        self._count += 1
        return self

    def hash_set(self, key: str, fields: dict[str, str]) -> "RedisBatch":
        self._pipeline.hset(key, mapping=fields)
        return self._queued()

    def hash_get_all(self, key: str) -> "RedisBatch":
        self._pipeline.hgetall(key)
        return self._queued()

    def set_add(self, key: str, member: str) -> "RedisBatch":
        self._pipeline.sadd(key, member)
        return self._queued()

    def set_remove(self, key: str, member: str) -> "RedisBatch":
        self._pipeline.srem(key, member)
        return self._queued()

    def set_members(self, key: str) -> "RedisBatch":
        self._pipeline.smembers(key)
        return self._queued()

    def delete(self, key: str) -> "RedisBatch":
        self._pipeline.delete(key)
        return self._queued()

    def submit(self) -> list[CommandResult]:
        try:
            raw = self._pipeline.execute(raise_on_error=False)
        except redis.RedisError as e:
            raise BackendError(f"pipeline failed: {e}") from e
        finally:
            self._count = 0
        return [
            CommandResult(item, None) if isinstance(item, Exception) else CommandResult(None, item)
            for item in raw
        ]

    def __len__(self) -> int:
        return self._count


def build_backend(settings: Settings) -> Backend:
    """Create the backend named by the settings."""
    if settings.backend == "memory":
        logger.info("Using in-memory backend (data is not persisted)")
        return MemoryBackend()
    logger.info(f"Connecting to {settings.redacted_url()}")
    return RedisBackend.from_url(settings.url, socket_timeout=settings.socket_timeout)
