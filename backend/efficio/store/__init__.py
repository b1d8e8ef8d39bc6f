"""
Efficio Backend — Capability Store Package
============================================

What:  The narrow key-value interface the data layer depends on, with its two
       implementations and the helpers the entry point uses to build one.

Store Inventory:
    - CapabilityStore (abstract): scalar/hash/set primitives + optimistic transactions
    - RedisStore: redis-py asyncio client over a shared connection pool
    - InMemoryStore: process-local store with the same semantics, for tests and dev
"""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from efficio.exceptions import StoreError
from efficio.store.base import (
    CapabilityStore,
    KeyValueReader,
    StoreTransaction,
    WriteBatch,
    WriteOp,
)
from efficio.store.memory_store import InMemoryStore
from efficio.store.redis_store import RedisStore

logger = logging.getLogger(__name__)

__all__ = [
    "CapabilityStore",
    "InMemoryStore",
    "KeyValueReader",
    "RedisStore",
    "StoreTransaction",
    "WriteBatch",
    "WriteOp",
    "create_store",
    "wait_until_ready",
]


def create_store(config) -> CapabilityStore:
    """
    Build the capability store selected by `config.store_backend`.

    Args:
        config: a Settings instance (or anything exposing the same fields)
    """
    if config.store_backend == "memory":
        logger.warning("Using the in-memory store: data is lost on restart")
        return InMemoryStore()
    return RedisStore.from_url(
        config.redis_url,
        max_connections=config.redis_max_connections,
        socket_timeout=config.redis_socket_timeout,
    )


async def wait_until_ready(
    store: CapabilityStore,
    attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 5,
) -> None:
    """
    Ping the store until it answers, with exponential backoff and jitter.

    Only connectivity is retried here. Transaction conflicts are never retried
    by the data layer.

    Raises:
        StoreError: the store is still unreachable after `attempts` pings
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(StoreError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=min_wait, max=max_wait, jitter=1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            if not await store.ping():
                raise StoreError(message="Store did not answer PING")
    logger.info("Capability store is reachable")
