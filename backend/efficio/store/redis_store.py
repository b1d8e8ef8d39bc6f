"""
Efficio Backend — Redis Capability Store
==========================================

What:  Production CapabilityStore backed by a Redis server.
How:   redis-py's asyncio client over one connection pool shared by every
       request. Transactions use WATCH / MULTI / EXEC through a pipeline:
       after WATCH the pipeline executes reads immediately, then MULTI turns it
       into a buffer for the queued WriteBatch, and EXEC raises WatchError if
       a watched key was modified in between.
Who:   Built by the process entry point (efficio.main) from settings and
       closed on shutdown. Nothing else constructs a client.

Error Translation:
    Any redis.exceptions.RedisError leaving this module becomes StoreError;
    WatchError becomes TransactionConflict. Callers never see client types.
"""

import functools
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from efficio.exceptions import StoreError, TransactionConflict
from efficio.store.base import (
    CapabilityStore,
    StoreTransaction,
    TransactionBody,
    Value,
    WriteOp,
)

logger = logging.getLogger(__name__)


def _translate_errors(func):
    """Wrap a coroutine method so client failures surface as StoreError."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except RedisError as e:
            logger.error(
                "Redis %s failed: %s: %s", func.__name__, type(e).__name__, str(e)
            )
            raise StoreError(
                context={"operation": func.__name__, "error_type": type(e).__name__}
            ) from e

    return wrapper


def _queue_op(pipe: Pipeline, op: WriteOp) -> None:
    """Buffer one queued write on a pipeline that is already in MULTI mode."""
    if op.op == "set":
        pipe.set(op.key, op.args[0])
    elif op.op == "delete":
        pipe.delete(op.key)
    elif op.op == "hset":
        pipe.hset(op.key, op.args[0], op.args[1])
    elif op.op == "hset_multiple":
        if op.args[0]:
            pipe.hset(op.key, mapping=op.args[0])
    elif op.op == "hdel":
        pipe.hdel(op.key, op.args[0])
    elif op.op == "sadd":
        pipe.sadd(op.key, op.args[0])
    elif op.op == "srem":
        pipe.srem(op.key, op.args[0])
    else:
        raise StoreError(message=f"Unknown queued operation '{op.op}'")


class RedisStore(CapabilityStore):
    """
    Capability store over a redis.asyncio client.

    The client must be created with decode_responses=True so every read
    returns str, matching InMemoryStore.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        max_connections: int = 15,
        socket_timeout: Optional[float] = 5.0,
    ) -> "RedisStore":
        client = Redis.from_url(
            url,
            decode_responses=True,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    # ── Reads ─────────────────────────────────────────────────────────────

    @_translate_errors
    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    @_translate_errors
    async def exists(self, key: str) -> bool:
        return await self._client.exists(key) > 0

    @_translate_errors
    async def hget(self, key: str, field: str) -> Optional[str]:
        return await self._client.hget(key, field)

    @_translate_errors
    async def hget_all(self, key: str) -> Dict[str, str]:
        return await self._client.hgetall(key)

    @_translate_errors
    async def hexists(self, key: str, field: str) -> bool:
        return bool(await self._client.hexists(key, field))

    @_translate_errors
    async def smembers(self, key: str) -> Set[str]:
        return set(await self._client.smembers(key))

    @_translate_errors
    async def sismember(self, key: str, member: Value) -> bool:
        return bool(await self._client.sismember(key, member))

    # ── Writes ────────────────────────────────────────────────────────────

    @_translate_errors
    async def set(self, key: str, value: Value) -> None:
        await self._client.set(key, value)

    @_translate_errors
    async def set_if_absent(self, key: str, value: Value) -> bool:
        return bool(await self._client.set(key, value, nx=True))

    @_translate_errors
    async def incr(self, key: str, delta: int = 1) -> int:
        return await self._client.incrby(key, delta)

    @_translate_errors
    async def delete(self, key: str) -> bool:
        return await self._client.delete(key) > 0

    @_translate_errors
    async def hset(self, key: str, field: str, value: Value) -> None:
        await self._client.hset(key, field, value)

    @_translate_errors
    async def hset_multiple(self, key: str, mapping: Mapping[str, Value]) -> None:
        if mapping:
            await self._client.hset(key, mapping=dict(mapping))

    @_translate_errors
    async def hdel(self, key: str, field: str) -> bool:
        return await self._client.hdel(key, field) > 0

    @_translate_errors
    async def sadd(self, key: str, member: Value) -> bool:
        return await self._client.sadd(key, member) > 0

    @_translate_errors
    async def srem(self, key: str, member: Value) -> bool:
        return await self._client.srem(key, member) > 0

    # ── Transactions ──────────────────────────────────────────────────────

    @_translate_errors
    async def transaction(self, watch_keys: Iterable[str], body: TransactionBody):
        keys = list(watch_keys)
        async with self._client.pipeline(transaction=True) as pipe:
            tx = _RedisTransaction(pipe, self._client)
            try:
                if keys:
                    await tx.watch(*keys)
                result = await body(tx)
                keys = tx.watched_keys

                pipe.multi()
                for op in tx.batch:
                    _queue_op(pipe, op)
                await pipe.execute()
            except WatchError as e:
                logger.info("Transaction aborted, watched keys changed: %s", keys)
                raise TransactionConflict(watched_keys=keys) from e
        return result

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @_translate_errors
    async def ping(self) -> bool:
        return bool(await self._client.ping())

    @_translate_errors
    async def flush_all(self) -> None:
        await self._client.flushdb()

    async def close(self) -> None:
        await self._client.aclose()


class _RedisTransaction(StoreTransaction):
    """
    Transaction handle reading through a watching pipeline.

    In immediate-execution mode (between WATCH and MULTI) each pipeline command
    returns an awaitable result, exactly like the plain client. An unwatched
    pipeline buffers commands instead, so until the first WATCH reads go
    through the client.
    """

    def __init__(self, pipe: Pipeline, client: Redis) -> None:
        super().__init__()
        self._pipe = pipe
        self._reader = client
        self.watched_keys: List[str] = []

    async def watch(self, *keys: str) -> None:
        if not keys:
            return
        await self._pipe.watch(*keys)
        self._reader = self._pipe
        self.watched_keys.extend(keys)

    async def get(self, key: str) -> Optional[str]:
        return await self._reader.get(key)

    async def exists(self, key: str) -> bool:
        return await self._reader.exists(key) > 0

    async def hget(self, key: str, field: str) -> Optional[str]:
        return await self._reader.hget(key, field)

    async def hget_all(self, key: str) -> Dict[str, str]:
        return await self._reader.hgetall(key)

    async def hexists(self, key: str, field: str) -> bool:
        return bool(await self._reader.hexists(key, field))

    async def smembers(self, key: str) -> Set[str]:
        return set(await self._reader.smembers(key))

    async def sismember(self, key: str, member: Value) -> bool:
        return bool(await self._reader.sismember(key, member))
