"""
Efficio Backend — Aisle Repository
====================================

What:  Aisles: the middle level of the user → store → aisle → product tree.
How:   One `aisle:{id}` hash per aisle, its id in `aisles_in_store:{store}`,
       and a `products_in_aisle:{aisle}` set owned by ProductRepository.
       Deleting an aisle walks its products into the same write batch so the
       whole subtree disappears in one commit.
Who:   Routes under /api/store/{id}/aisle and /api/aisle/{id}; StoreRepository
       when it cascades a delete.
"""

import logging
from typing import Dict, List, Optional

from efficio.exceptions import InternalError, NotFoundError
from efficio.schemas.grocery import Aisle
from efficio.services import keys
from efficio.services.ids import EntityKind, IdAllocator
from efficio.services.ordering import next_sort_weight, sort_by_weight
from efficio.services.permissions import PermissionGuard, check_ownership
from efficio.services.products import ProductRepository
from efficio.services.sessions import SessionManager
from efficio.services.transaction import TransactionEngine
from efficio.store import CapabilityStore, KeyValueReader, StoreTransaction, WriteBatch

logger = logging.getLogger(__name__)


class AisleRepository:
    """
    Create, rename, delete and list aisles.

    Responsibilities:
        - create(): owner check against the parent store, weight assignment,
          record + membership written together
        - rename(): single field write
        - delete(): aisle record, its products and both membership links in
          one transaction
        - list_in_store(): aisles with their products, ordered
    """

    def __init__(
        self,
        store: CapabilityStore,
        engine: TransactionEngine,
        ids: IdAllocator,
        sessions: SessionManager,
        guard: PermissionGuard,
        products: ProductRepository,
    ) -> None:
        self.store = store
        self.engine = engine
        self.ids = ids
        self.sessions = sessions
        self.guard = guard
        self.products = products

    # ── Lookups ───────────────────────────────────────────────────────────

    async def owner_of(self, aisle_id: str, reader: Optional[KeyValueReader] = None) -> str:
        """Raises NotFoundError when the aisle does not exist."""
        reader = reader or self.store
        owner = await reader.hget(keys.aisle_key(aisle_id), keys.OWNER)
        if owner is None:
            raise NotFoundError(resource="aisle", resource_id=aisle_id)
        return owner

    async def list_in_store(
        self, store_id: str, reader: Optional[KeyValueReader] = None
    ) -> List[Aisle]:
        """Aisles of one store with their products, both ordered by weight then name."""
        reader = reader or self.store
        aisles = []
        for aisle_id in await reader.smembers(keys.aisles_in_store_key(store_id)):
            fields = await reader.hget_all(keys.aisle_key(aisle_id))
            if not fields:
                logger.debug("Skipping vanished aisle %s", aisle_id)
                continue
            aisles.append(
                Aisle(
                    aisle_id=aisle_id,
                    name=fields.get(keys.NAME, ""),
                    sort_weight=float(fields.get(keys.SORT_WEIGHT, "0")),
                    products=await self.products.list_in_aisle(aisle_id, reader),
                )
            )
        return sort_by_weight(aisles)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def create(self, token: Optional[str], store_id: str, name: str) -> Aisle:
        """
        Add an aisle named `name` to a store owned by the caller.

        Returns:
            The new Aisle, with no products.

        Raises:
            Unauthorized: bad token
            NotFoundError: the store does not exist
            PermissionDenied: the caller does not own the store
            TransactionConflict: the store or its aisles changed concurrently
        """
        user_id = await self.sessions.validate_session(token)
        check_ownership(user_id, await self._store_owner(self.store, store_id), "store", store_id)
        aisle_id = await self.ids.next_id(EntityKind.AISLE)
        record = keys.aisle_key(aisle_id)
        members = keys.aisles_in_store_key(store_id)

        async def body(tx: StoreTransaction) -> Aisle:
            check_ownership(user_id, await self._store_owner(tx, store_id), "store", store_id)
            weight = await next_sort_weight(tx, members, keys.aisle_key)
            tx.hset_multiple(
                record,
                {
                    keys.NAME: name,
                    keys.SORT_WEIGHT: weight,
                    keys.OWNER: user_id,
                    keys.AISLE_STORE: store_id,
                },
            )
            tx.sadd(members, aisle_id)
            return Aisle(aisle_id=aisle_id, name=name, sort_weight=weight)

        aisle = await self.engine.run(
            [record, members, keys.store_key(store_id)], body, operation="create_aisle"
        )
        logger.info("Aisle %s created in store %s", aisle_id, store_id)
        return aisle

    async def rename(self, token: Optional[str], aisle_id: str, name: str) -> None:
        owner = await self.owner_of(aisle_id)
        await self.guard.check_session(token, owner, "aisle", aisle_id)
        await self.engine.update_fields(
            keys.aisle_key(aisle_id), {keys.NAME: name}, "aisle", aisle_id
        )

    async def delete(self, token: Optional[str], aisle_id: str) -> None:
        """
        Delete an aisle and all of its products atomically.

        Raises:
            NotFoundError / PermissionDenied / Unauthorized
            InternalError: the aisle record has no store id
            TransactionConflict: the aisle or one of the touched sets changed
        """
        record = keys.aisle_key(aisle_id)
        owner = await self.owner_of(aisle_id)
        await self.guard.check_session(token, owner, "aisle", aisle_id)
        store_id = await self._parent_id(self.store, aisle_id)
        if store_id is None:
            raise NotFoundError(resource="aisle", resource_id=aisle_id)
        members = keys.aisles_in_store_key(store_id)

        async def body(tx: StoreTransaction) -> int:
            if await self._parent_id(tx, aisle_id) != store_id:
                raise NotFoundError(resource="aisle", resource_id=aisle_id)
            batch = WriteBatch()
            await self.products.purge_in_aisle(tx, aisle_id, batch)
            batch.srem(members, aisle_id)
            batch.delete(record)
            tx.queue(batch)
            return len(batch)

        queued = await self.engine.run([record, members], body, operation="delete_aisle")
        logger.info("Aisle %s deleted (%d queued writes)", aisle_id, queued)

    # ── Cascade helpers ───────────────────────────────────────────────────

    async def purge_in_store(self, tx: StoreTransaction, store_id: str, batch: WriteBatch) -> None:
        """
        Queue deletion of every aisle of `store_id`, their products, and the
        store's aisle membership set. Children are queued before their parent.
        """
        members = keys.aisles_in_store_key(store_id)
        await tx.watch(members)
        for aisle_id in sorted(await tx.smembers(members)):
            await self.products.purge_in_aisle(tx, aisle_id, batch)
            batch.delete(keys.aisle_key(aisle_id))
        batch.delete(members)

    def queue_sort_weight(self, batch: WriteBatch, aisle_id: str, weight: float) -> None:
        batch.hset(keys.aisle_key(aisle_id), keys.SORT_WEIGHT, float(weight))

    # ── Internals ─────────────────────────────────────────────────────────

    async def _store_owner(self, reader: KeyValueReader, store_id: str) -> str:
        owner = await reader.hget(keys.store_key(store_id), keys.OWNER)
        if owner is None:
            raise NotFoundError(resource="store", resource_id=store_id)
        return owner

    async def _parent_id(self, reader: KeyValueReader, aisle_id: str) -> Optional[str]:
        fields: Dict[str, str] = await reader.hget_all(keys.aisle_key(aisle_id))
        if not fields:
            return None
        store_id = fields.get(keys.AISLE_STORE)
        if not store_id:
            raise InternalError(
                message="Aisle record has no store id",
                context={"aisle_id": aisle_id},
            )
        return store_id
