"""
Efficio Backend — In-Memory Capability Store
==============================================

What:  Process-local implementation of CapabilityStore with Redis semantics.
How:   Three dicts (strings, hashes, sets) plus a per-key write version.
       A transaction snapshots the versions of its watched keys, lets the body
       read live data and queue writes, then commits only if no watched
       version moved. Each public coroutine completes without awaiting in the
       middle, so on one event loop every primitive and every commit is atomic.
Who:   Selected with STORE_BACKEND=memory and injected by the test fixtures.

Mirrored Redis behaviours:
    - Operating on a key of the wrong type fails (WRONGTYPE).
    - Emptied hashes and sets disappear.
    - WATCH fires on any write that touched the key, including delete and re-create.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Set

from efficio.exceptions import StoreError, TransactionConflict
from efficio.store.base import (
    CapabilityStore,
    StoreTransaction,
    TransactionBody,
    Value,
    WriteBatch,
    WriteOp,
    encode_value,
)

logger = logging.getLogger(__name__)

STRING, HASH, SET = "string", "hash", "set"

# Kind of key each queued operation requires (None = any kind)
_OP_KINDS = {
    "set": STRING,
    "delete": None,
    "hset": HASH,
    "hset_multiple": HASH,
    "hdel": HASH,
    "sadd": SET,
    "srem": SET,
}


class InMemoryStore(CapabilityStore):
    """Dictionary-backed capability store. Not shared between processes."""

    def __init__(self) -> None:
        self._strings: Dict[str, str] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._sets: Dict[str, Set[str]] = {}
        # Never cleared, so delete-then-recreate still invalidates a watch
        self._versions: Dict[str, int] = {}

    # ── Internals ─────────────────────────────────────────────────────────

    def _kind(self, key: str) -> Optional[str]:
        if key in self._strings:
            return STRING
        if key in self._hashes:
            return HASH
        if key in self._sets:
            return SET
        return None

    def _require(self, key: str, kind: str) -> None:
        actual = self._kind(key)
        if actual is not None and actual != kind:
            raise StoreError(
                message="Operation against a key holding the wrong kind of value",
                context={"key": key, "expected": kind, "actual": actual},
            )

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _version(self, key: str) -> int:
        return self._versions.get(key, 0)

    def _delete_key(self, key: str) -> bool:
        removed = False
        for space in (self._strings, self._hashes, self._sets):
            if key in space:
                del space[key]
                removed = True
        if removed:
            self._touch(key)
        return removed

    def _apply(self, op: WriteOp) -> None:
        if op.op == "set":
            self._set(op.key, *op.args)
        elif op.op == "delete":
            self._delete_key(op.key)
        elif op.op == "hset":
            self._hset_many(op.key, {op.args[0]: op.args[1]})
        elif op.op == "hset_multiple":
            self._hset_many(op.key, op.args[0])
        elif op.op == "hdel":
            self._hdel(op.key, op.args[0])
        elif op.op == "sadd":
            self._sadd(op.key, op.args[0])
        elif op.op == "srem":
            self._srem(op.key, op.args[0])
        else:
            raise StoreError(message=f"Unknown queued operation '{op.op}'")

    def _validate_batch(self, batch: WriteBatch) -> None:
        """Reject a batch up front so a bad operation cannot leave half a commit behind."""
        kinds: Dict[str, Optional[str]] = {}
        for op in batch:
            if op.op not in _OP_KINDS:
                raise StoreError(message=f"Unknown queued operation '{op.op}'")
            current = kinds[op.key] if op.key in kinds else self._kind(op.key)
            required = _OP_KINDS[op.op]
            if op.op == "set":
                # SET replaces whatever the key held
                kinds[op.key] = STRING
                continue
            if required is None:
                kinds[op.key] = None
                continue
            if current is not None and current != required:
                raise StoreError(
                    message="Queued operation against a key holding the wrong kind of value",
                    context={"key": op.key, "operation": op.op},
                )
            kinds[op.key] = required

    def _set(self, key: str, value: Value) -> None:
        self._delete_key(key)
        self._strings[key] = encode_value(value)
        self._touch(key)

    def _hset_many(self, key: str, mapping: Mapping[str, Value]) -> None:
        self._require(key, HASH)
        if not mapping:
            return
        fields = self._hashes.setdefault(key, {})
        for field, value in mapping.items():
            fields[field] = encode_value(value)
        self._touch(key)

    def _hdel(self, key: str, field: str) -> bool:
        self._require(key, HASH)
        fields = self._hashes.get(key)
        if not fields or field not in fields:
            return False
        del fields[field]
        if not fields:
            del self._hashes[key]
        self._touch(key)
        return True

    def _sadd(self, key: str, member: Value) -> bool:
        self._require(key, SET)
        members = self._sets.setdefault(key, set())
        encoded = encode_value(member)
        if encoded in members:
            return False
        members.add(encoded)
        self._touch(key)
        return True

    def _srem(self, key: str, member: Value) -> bool:
        self._require(key, SET)
        members = self._sets.get(key)
        encoded = encode_value(member)
        if not members or encoded not in members:
            return False
        members.discard(encoded)
        if not members:
            del self._sets[key]
        self._touch(key)
        return True

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, key: str) -> Optional[str]:
        self._require(key, STRING)
        return self._strings.get(key)

    async def exists(self, key: str) -> bool:
        return self._kind(key) is not None

    async def hget(self, key: str, field: str) -> Optional[str]:
        self._require(key, HASH)
        return self._hashes.get(key, {}).get(field)

    async def hget_all(self, key: str) -> Dict[str, str]:
        self._require(key, HASH)
        return dict(self._hashes.get(key, {}))

    async def hexists(self, key: str, field: str) -> bool:
        self._require(key, HASH)
        return field in self._hashes.get(key, {})

    async def smembers(self, key: str) -> Set[str]:
        self._require(key, SET)
        return set(self._sets.get(key, set()))

    async def sismember(self, key: str, member: Value) -> bool:
        self._require(key, SET)
        return encode_value(member) in self._sets.get(key, set())

    # ── Writes ────────────────────────────────────────────────────────────

    async def set(self, key: str, value: Value) -> None:
        self._set(key, value)

    async def set_if_absent(self, key: str, value: Value) -> bool:
        if self._kind(key) is not None:
            return False
        self._set(key, value)
        return True

    async def incr(self, key: str, delta: int = 1) -> int:
        self._require(key, STRING)
        raw = self._strings.get(key, "0")
        try:
            current = int(raw)
        except ValueError:
            raise StoreError(
                message="Value is not an integer or out of range",
                context={"key": key},
            )
        current += delta
        self._strings[key] = str(current)
        self._touch(key)
        return current

    async def delete(self, key: str) -> bool:
        return self._delete_key(key)

    async def hset(self, key: str, field: str, value: Value) -> None:
        self._hset_many(key, {field: value})

    async def hset_multiple(self, key: str, mapping: Mapping[str, Value]) -> None:
        self._hset_many(key, mapping)

    async def hdel(self, key: str, field: str) -> bool:
        return self._hdel(key, field)

    async def sadd(self, key: str, member: Value) -> bool:
        return self._sadd(key, member)

    async def srem(self, key: str, member: Value) -> bool:
        return self._srem(key, member)

    # ── Transactions ──────────────────────────────────────────────────────

    async def transaction(self, watch_keys: Iterable[str], body: TransactionBody):
        watched = {key: self._version(key) for key in watch_keys}
        tx = _MemoryTransaction(self, watched)
        result = await body(tx)

        changed = [key for key, version in watched.items() if self._version(key) != version]
        if changed:
            logger.debug("Watched keys changed before commit: %s", changed)
            raise TransactionConflict(watched_keys=changed)

        self._validate_batch(tx.batch)
        for op in tx.batch:
            self._apply(op)
        return result

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def ping(self) -> bool:
        return True

    async def flush_all(self) -> None:
        for key in list(self._strings) + list(self._hashes) + list(self._sets):
            self._delete_key(key)


class _MemoryTransaction(StoreTransaction):
    """Transaction handle whose reads go straight to the owning store."""

    def __init__(self, store: InMemoryStore, watched: Dict[str, int]) -> None:
        super().__init__()
        self._store = store
        self._watched = watched

    async def watch(self, *keys: str) -> None:
        for key in keys:
            self._watched.setdefault(key, self._store._version(key))

    async def get(self, key: str) -> Optional[str]:
        return await self._store.get(key)

    async def exists(self, key: str) -> bool:
        return await self._store.exists(key)

    async def hget(self, key: str, field: str) -> Optional[str]:
        return await self._store.hget(key, field)

    async def hget_all(self, key: str) -> Dict[str, str]:
        return await self._store.hget_all(key)

    async def hexists(self, key: str, field: str) -> bool:
        return await self._store.hexists(key, field)

    async def smembers(self, key: str) -> Set[str]:
        return await self._store.smembers(key)

    async def sismember(self, key: str, member: Value) -> bool:
        return await self._store.sismember(key, member)
