"""
Efficio Backend — Capability Store Interface
==============================================

What:  Abstract key-value contract the whole data layer is written against.
How:   Concrete stores inherit from CapabilityStore and implement the scalar,
       hash, set and optimistic-transaction primitives. Writes inside a
       transaction are never sent one by one: the body queues them into a
       WriteBatch (a flat list of WriteOp tuples) and the store commits the
       whole batch atomically, or not at all if a watched key changed.
Who:   Implemented by RedisStore (production) and InMemoryStore (tests, dev).

Primitive Inventory:
    Scalars:  get, set, set_if_absent, incr, exists, delete
    Hashes:   hget, hget_all, hset, hset_multiple, hdel, hexists
    Sets:     sadd, srem, smembers, sismember
    Atomic:   transaction(watch_keys, body)

Semantics shared by every implementation:
    - Values are stored and returned as strings (ints via str(), floats via repr()).
    - A hash or set that loses its last field/member no longer exists.
    - Reads of missing keys/fields return None (scalars, fields) or empty
      containers (hashes, sets); they never raise.
"""

from abc import ABC, abstractmethod
from typing import (
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Set,
    Tuple,
    TypeVar,
    Union,
)

Value = Union[str, int, float]
T = TypeVar("T")


def encode_value(value: Value) -> str:
    """
    Convert a value to its stored string form, the way the Redis client does.

    Booleans are rejected: callers must pick an explicit encoding for them.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans must be encoded explicitly before storage")
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (int, str)):
        return str(value)
    raise TypeError(f"Unsupported value type {type(value).__name__}")


# ══════════════════════════════════════════════════════════════════════════
# Queued Writes
# ══════════════════════════════════════════════════════════════════════════


class WriteOp(NamedTuple):
    """One queued write: operation name, target key and operation arguments."""

    op: str
    key: str
    args: Tuple = ()


class WriteBatch:
    """
    Ordered list of writes waiting for an atomic commit.

    Cascading deletes walk the ownership tree depth-first and keep appending
    to the same batch, so a store delete with N aisles and M products still
    ends up as one flat list committed once.
    """

    OPERATIONS = ("set", "delete", "hset", "hset_multiple", "hdel", "sadd", "srem")

    def __init__(self) -> None:
        self.ops: List[WriteOp] = []

    def _append(self, op: str, key: str, *args) -> "WriteBatch":
        self.ops.append(WriteOp(op, key, tuple(args)))
        return self

    def set(self, key: str, value: Value) -> "WriteBatch":
        return self._append("set", key, value)

    def delete(self, key: str) -> "WriteBatch":
        return self._append("delete", key)

    def hset(self, key: str, field: str, value: Value) -> "WriteBatch":
        return self._append("hset", key, field, value)

    def hset_multiple(self, key: str, mapping: Mapping[str, Value]) -> "WriteBatch":
        return self._append("hset_multiple", key, dict(mapping))

    def hdel(self, key: str, field: str) -> "WriteBatch":
        return self._append("hdel", key, field)

    def sadd(self, key: str, member: Value) -> "WriteBatch":
        return self._append("sadd", key, member)

    def srem(self, key: str, member: Value) -> "WriteBatch":
        return self._append("srem", key, member)

    def extend(self, other: "WriteBatch") -> "WriteBatch":
        self.ops.extend(other.ops)
        return self

    @property
    def keys(self) -> List[str]:
        """Distinct keys touched by the batch, in first-touch order."""
        seen: Dict[str, None] = {}
        for op in self.ops:
            seen.setdefault(op.key, None)
        return list(seen)

    def __iter__(self) -> Iterator[WriteOp]:
        return iter(self.ops)

    def __len__(self) -> int:
        return len(self.ops)

    def __repr__(self) -> str:
        return f"WriteBatch({len(self.ops)} ops)"


# ══════════════════════════════════════════════════════════════════════════
# Read Contract (shared by stores and open transactions)
# ══════════════════════════════════════════════════════════════════════════


class KeyValueReader(ABC):
    """
    Read half of the capability interface.

    Repository helpers accept any reader, so the same lookup code runs against
    the store directly or inside a watched transaction.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def hget(self, key: str, field: str) -> Optional[str]:
        ...

    @abstractmethod
    async def hget_all(self, key: str) -> Dict[str, str]:
        ...

    @abstractmethod
    async def hexists(self, key: str, field: str) -> bool:
        ...

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]:
        ...

    @abstractmethod
    async def sismember(self, key: str, member: Value) -> bool:
        ...


class StoreTransaction(KeyValueReader):
    """
    Handle passed to a transaction body.

    Reads execute immediately against the watched connection; writes are only
    queued on `self.batch` and reach the store at commit time.
    """

    def __init__(self) -> None:
        self.batch = WriteBatch()

    @abstractmethod
    async def watch(self, *keys: str) -> None:
        """
        Add keys to the watch set after the transaction started.

        Cascades use this for membership sets they only discover while
        walking the tree. Must be called before the body returns.
        """
        ...

    def set(self, key: str, value: Value) -> None:
        self.batch.set(key, value)

    def delete(self, key: str) -> None:
        self.batch.delete(key)

    def hset(self, key: str, field: str, value: Value) -> None:
        self.batch.hset(key, field, value)

    def hset_multiple(self, key: str, mapping: Mapping[str, Value]) -> None:
        self.batch.hset_multiple(key, mapping)

    def hdel(self, key: str, field: str) -> None:
        self.batch.hdel(key, field)

    def sadd(self, key: str, member: Value) -> None:
        self.batch.sadd(key, member)

    def srem(self, key: str, member: Value) -> None:
        self.batch.srem(key, member)

    def queue(self, batch: WriteBatch) -> None:
        """Append a batch built elsewhere (e.g. by a cascade walk)."""
        self.batch.extend(batch)


TransactionBody = Callable[[StoreTransaction], Awaitable[T]]


# ══════════════════════════════════════════════════════════════════════════
# Full Capability Store
# ══════════════════════════════════════════════════════════════════════════


class CapabilityStore(KeyValueReader):
    """
    Abstract capability store.

    Contract:
        - Every method is a coroutine; implementations translate their own
          client errors into StoreError.
        - transaction() watches `watch_keys`, runs `body`, then commits the
          queued batch atomically. If any watched key was written by someone
          else in between, nothing is applied and TransactionConflict is raised.
        - transaction() never retries.
    """

    # ── Scalars ───────────────────────────────────────────────────────────

    @abstractmethod
    async def set(self, key: str, value: Value) -> None:
        ...

    @abstractmethod
    async def set_if_absent(self, key: str, value: Value) -> bool:
        """Set `key` only if it does not exist yet. Returns True when it was set."""
        ...

    @abstractmethod
    async def incr(self, key: str, delta: int = 1) -> int:
        """Atomically add `delta` to the integer at `key` (missing = 0)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    # ── Hashes ────────────────────────────────────────────────────────────

    @abstractmethod
    async def hset(self, key: str, field: str, value: Value) -> None:
        ...

    @abstractmethod
    async def hset_multiple(self, key: str, mapping: Mapping[str, Value]) -> None:
        ...

    @abstractmethod
    async def hdel(self, key: str, field: str) -> bool:
        ...

    # ── Sets ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def sadd(self, key: str, member: Value) -> bool:
        ...

    @abstractmethod
    async def srem(self, key: str, member: Value) -> bool:
        ...

    # ── Transactions ──────────────────────────────────────────────────────

    @abstractmethod
    async def transaction(
        self, watch_keys: Iterable[str], body: TransactionBody
    ) -> T:
        ...

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @abstractmethod
    async def ping(self) -> bool:
        """Lightweight connectivity probe used by startup and /health."""
        ...

    @abstractmethod
    async def flush_all(self) -> None:
        """Remove every key. Only reachable through the debug flush endpoint."""
        ...

    async def close(self) -> None:
        """Release client resources. No-op unless the implementation holds any."""
        return None
