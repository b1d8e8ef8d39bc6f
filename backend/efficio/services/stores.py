"""
Efficio Backend — Store Repository
====================================

What:  Stores: the top level of a user's grocery tree.
How:   One `store:{id}` hash per store and its id in the owner's
       `stores:{user}` set. A store delete queues its aisles, their products
       and every membership set into one batch and commits it once.
Who:   Routes under /api/store; UserService when an account is deleted.
"""

import logging
from typing import List, Optional

from efficio.exceptions import EfficioError, NotFoundError
from efficio.schemas.grocery import Store, StoreLight, StoreLightList
from efficio.services import keys
from efficio.services.aisles import AisleRepository
from efficio.services.ids import EntityKind, IdAllocator
from efficio.services.permissions import PermissionGuard
from efficio.services.sessions import SessionManager
from efficio.services.transaction import TransactionEngine
from efficio.store import CapabilityStore, KeyValueReader, StoreTransaction, WriteBatch

logger = logging.getLogger(__name__)


class StoreRepository:
    """Create, rename, delete, read and list stores."""

    def __init__(
        self,
        store: CapabilityStore,
        engine: TransactionEngine,
        ids: IdAllocator,
        sessions: SessionManager,
        guard: PermissionGuard,
        aisles: AisleRepository,
    ) -> None:
        self.store = store
        self.engine = engine
        self.ids = ids
        self.sessions = sessions
        self.guard = guard
        self.aisles = aisles

    async def owner_of(self, store_id: str, reader: Optional[KeyValueReader] = None) -> str:
        """Raises NotFoundError when the store does not exist."""
        reader = reader or self.store
        owner = await reader.hget(keys.store_key(store_id), keys.OWNER)
        if owner is None:
            raise NotFoundError(resource="store", resource_id=store_id)
        return owner

    async def create(self, token: Optional[str], name: str) -> Store:
        """
        Create a store owned by the caller.

        Returns:
            The new Store, with no aisles.
        """
        user_id = await self.sessions.validate_session(token)
        store_id = await self.ids.next_id(EntityKind.STORE)
        record = keys.store_key(store_id)
        members = keys.user_stores_key(user_id)

        async def body(tx: StoreTransaction) -> None:
            tx.hset_multiple(record, {keys.NAME: name, keys.OWNER: user_id})
            tx.sadd(members, store_id)

        await self.engine.run([record, members], body, operation="create_store")
        logger.info("Store %s created for user %s", store_id, user_id)
        return Store(store_id=store_id, name=name)

    async def rename(self, token: Optional[str], store_id: str, name: str) -> None:
        owner = await self.owner_of(store_id)
        await self.guard.check_session(token, owner, "store", store_id)
        await self.engine.update_fields(
            keys.store_key(store_id), {keys.NAME: name}, "store", store_id
        )

    async def get(self, token: Optional[str], store_id: str) -> Store:
        """Full store (aisles and products, ordered). Owner only."""
        owner = await self.owner_of(store_id)
        await self.guard.check_session(token, owner, "store", store_id)
        name = await self.store.hget(keys.store_key(store_id), keys.NAME)
        if name is None:
            raise NotFoundError(resource="store", resource_id=store_id)
        return Store(
            store_id=store_id,
            name=name,
            aisles=await self.aisles.list_in_store(store_id),
        )

    async def list_for_user(self, token: Optional[str]) -> StoreLightList:
        """Shallow listing: ids and names of the caller's stores, ordered by name."""
        user_id = await self.sessions.validate_session(token)
        stores: List[StoreLight] = []
        for store_id in await self.store.smembers(keys.user_stores_key(user_id)):
            name = await self.store.hget(keys.store_key(store_id), keys.NAME)
            if name is None:
                continue
            stores.append(StoreLight(store_id=store_id, name=name))
        stores.sort(key=lambda s: (s.name, s.store_id))
        return StoreLightList(stores=stores)

    async def delete(self, token: Optional[str], store_id: str) -> None:
        """
        Delete a store with all of its aisles and products in one commit.

        Raises:
            NotFoundError / PermissionDenied / Unauthorized
            TransactionConflict: a touched record or set changed concurrently
        """
        owner = await self.owner_of(store_id)
        user_id = await self.guard.check_session(token, owner, "store", store_id)
        await self._delete_owned(store_id, user_id)

    async def delete_all_for_user(self, token: Optional[str]) -> int:
        """
        Delete every store of the caller, one transaction per store.

        Every store is attempted; the first failure is re-raised at the end.

        Returns:
            Number of stores deleted.
        """
        user_id = await self.sessions.validate_session(token)
        deleted = 0
        first_error: Optional[EfficioError] = None
        for store_id in sorted(await self.store.smembers(keys.user_stores_key(user_id))):
            try:
                await self._delete_owned(store_id, user_id)
                deleted += 1
            except EfficioError as e:
                logger.warning("Could not delete store %s: %s", store_id, e.message)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
        return deleted

    async def _delete_owned(self, store_id: str, user_id: str) -> None:
        record = keys.store_key(store_id)
        members = keys.user_stores_key(user_id)

        async def body(tx: StoreTransaction) -> int:
            if await tx.hget(record, keys.OWNER) != user_id:
                raise NotFoundError(resource="store", resource_id=store_id)
            batch = WriteBatch()
            await self.aisles.purge_in_store(tx, store_id, batch)
            batch.srem(members, store_id)
            batch.delete(record)
            tx.queue(batch)
            return len(batch)

        queued = await self.engine.run([record, members], body, operation="delete_store")
        logger.info("Store %s deleted (%d queued writes)", store_id, queued)
