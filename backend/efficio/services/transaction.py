"""
Efficio Backend — Transaction Engine
======================================

What:  Runs a unit of work atomically against the capability store.
How:   Watch the given keys, let the body read and queue writes, commit once.
       A concurrent write to a watched key aborts the commit with
       TransactionConflict; store failures surface as StoreError. Both are
       InternalError subclasses and propagate unchanged.
Who:   Every multi-key mutation in the services layer.

Retry Policy:
    None. A conflict is reported to the caller, who may retry the whole
    operation (the HTTP layer answers 503 so clients know it is transient).
"""

import logging
from typing import Iterable, Mapping

from efficio.exceptions import EfficioError, NotFoundError, TransactionConflict
from efficio.services import keys
from efficio.store import CapabilityStore, StoreTransaction
from efficio.store.base import TransactionBody, Value

logger = logging.getLogger(__name__)


class TransactionEngine:
    """Thin, logged wrapper over CapabilityStore.transaction()."""

    def __init__(self, store: CapabilityStore) -> None:
        self.store = store

    async def run(
        self,
        watch_keys: Iterable[str],
        body: TransactionBody,
        operation: str = "transaction",
    ):
        """
        Execute `body` inside one watched transaction.

        Args:
            watch_keys: keys whose modification by anyone else aborts the commit
            body: coroutine receiving a StoreTransaction; its return value is
                  returned once the commit succeeded
            operation: name used in log lines

        Raises:
            TransactionConflict: a watched key changed before the commit
            StoreError: the store failed
            EfficioError: anything the body raised (nothing is committed)
        """
        watched = list(dict.fromkeys(watch_keys))
        try:
            result = await self.store.transaction(watched, body)
        except TransactionConflict as e:
            logger.warning(
                "%s aborted by a concurrent write: %s",
                operation,
                e.context.get("watched_keys", watched),
            )
            raise
        except EfficioError as e:
            logger.debug("%s not committed: %s", operation, e.message)
            raise
        logger.debug("%s committed (watched %d keys)", operation, len(watched))
        return result

    async def update_fields(
        self,
        key: str,
        fields: Mapping[str, Value],
        resource: str,
        resource_id: str,
    ) -> None:
        """
        Write `fields` onto an existing record hash.

        The record is watched and must still carry its owner field, so a
        write racing a delete cannot resurrect a partial record.

        Raises:
            NotFoundError: the record no longer exists
            TransactionConflict: the record changed before the commit
        """

        async def body(tx: StoreTransaction) -> None:
            if not await tx.hexists(key, keys.OWNER):
                raise NotFoundError(resource=resource, resource_id=resource_id)
            tx.hset_multiple(key, fields)

        await self.run([key], body, operation=f"update_{resource}")
