"""
Efficio Backend — Product Repository
======================================

What:  Products: the leaves of the user → store → aisle → product tree.
How:   One `product:{id}` hash per product plus its id in the parent aisle's
       `products_in_aisle:{aisle}` set, always written together in one
       transaction.
Who:   Routes under /api/aisle/{id}/product and /api/product/{id};
       AisleRepository when it cascades a delete.
"""

import logging
from typing import Dict, List, Optional

from efficio.exceptions import InternalError, NotFoundError, ValidationError
from efficio.schemas.grocery import (
    EditProduct,
    Product,
    Unit,
    decode_bool,
    encode_bool,
)
from efficio.services import keys
from efficio.services.ids import EntityKind, IdAllocator
from efficio.services.ordering import next_sort_weight, sort_by_weight
from efficio.services.permissions import PermissionGuard, check_ownership
from efficio.services.sessions import SessionManager
from efficio.services.transaction import TransactionEngine
from efficio.store import CapabilityStore, KeyValueReader, StoreTransaction, WriteBatch

logger = logging.getLogger(__name__)


def product_from_fields(product_id: str, fields: Dict[str, str]) -> Product:
    return Product(
        product_id=product_id,
        name=fields.get(keys.NAME, ""),
        quantity=int(fields.get(keys.PRODUCT_QUANTITY, "1")),
        unit=Unit.parse(fields.get(keys.PRODUCT_UNIT)),
        is_done=decode_bool(fields.get(keys.PRODUCT_DONE)),
        sort_weight=float(fields.get(keys.SORT_WEIGHT, "0")),
    )


class ProductRepository:
    """Create, edit, delete and list products."""

    def __init__(
        self,
        store: CapabilityStore,
        engine: TransactionEngine,
        ids: IdAllocator,
        sessions: SessionManager,
        guard: PermissionGuard,
    ) -> None:
        self.store = store
        self.engine = engine
        self.ids = ids
        self.sessions = sessions
        self.guard = guard

    # ── Lookups ───────────────────────────────────────────────────────────

    async def owner_of(
        self, product_id: str, reader: Optional[KeyValueReader] = None
    ) -> str:
        """Raises NotFoundError when the product does not exist."""
        reader = reader or self.store
        owner = await reader.hget(keys.product_key(product_id), keys.OWNER)
        if owner is None:
            raise NotFoundError(resource="product", resource_id=product_id)
        return owner

    async def get(self, product_id: str, reader: Optional[KeyValueReader] = None) -> Product:
        reader = reader or self.store
        fields = await reader.hget_all(keys.product_key(product_id))
        if not fields:
            raise NotFoundError(resource="product", resource_id=product_id)
        return product_from_fields(product_id, fields)

    async def list_in_aisle(
        self, aisle_id: str, reader: Optional[KeyValueReader] = None
    ) -> List[Product]:
        """Products of one aisle, ordered by weight then name."""
        reader = reader or self.store
        products = []
        for product_id in await reader.smembers(keys.products_in_aisle_key(aisle_id)):
            fields = await reader.hget_all(keys.product_key(product_id))
            if not fields:
                # Membership without a record means a concurrent delete committed
                # between the two reads
                logger.debug("Skipping vanished product %s", product_id)
                continue
            products.append(product_from_fields(product_id, fields))
        return sort_by_weight(products)

    # ── Mutations ─────────────────────────────────────────────────────────

    async def create(self, token: Optional[str], aisle_id: str, name: str) -> Product:
        """
        Add a product named `name` to an aisle owned by the caller.

        Defaults: quantity 1, unit count, not done. The weight is 0 for the
        first product of the aisle and max + 1 afterwards, computed inside the
        watched block together with the aisle ownership check.

        Raises:
            Unauthorized: bad token
            NotFoundError: the aisle does not exist
            PermissionDenied: the caller does not own the aisle
            TransactionConflict: the aisle changed concurrently
        """
        user_id = await self.sessions.validate_session(token)
        check_ownership(
            user_id, await self._aisle_owner(self.store, aisle_id), "aisle", aisle_id
        )
        product_id = await self.ids.next_id(EntityKind.PRODUCT)
        record = keys.product_key(product_id)
        members = keys.products_in_aisle_key(aisle_id)

        async def body(tx: StoreTransaction) -> Product:
            check_ownership(user_id, await self._aisle_owner(tx, aisle_id), "aisle", aisle_id)
            weight = await next_sort_weight(tx, members, keys.product_key)
            product = Product(product_id=product_id, name=name, sort_weight=weight)
            tx.hset_multiple(
                record,
                {
                    keys.NAME: product.name,
                    keys.PRODUCT_QUANTITY: product.quantity,
                    keys.PRODUCT_UNIT: product.unit.value,
                    keys.PRODUCT_DONE: encode_bool(product.is_done),
                    keys.SORT_WEIGHT: product.sort_weight,
                    keys.OWNER: user_id,
                    keys.PRODUCT_AISLE: aisle_id,
                },
            )
            tx.sadd(members, product_id)
            return product

        product = await self.engine.run(
            [record, members, keys.aisle_key(aisle_id)], body, operation="create_product"
        )
        logger.info("Product %s created in aisle %s", product_id, aisle_id)
        return product

    async def edit(self, token: Optional[str], product_id: str, changes: EditProduct) -> None:
        """
        Write the fields set on `changes` with one multi-field hash write.

        Raises:
            ValidationError: no field is set
            NotFoundError / PermissionDenied / Unauthorized
        """
        if not changes.has_at_least_a_field():
            raise ValidationError(message="At least one field must be present")
        owner = await self.owner_of(product_id)
        await self.guard.check_session(token, owner, "product", product_id)

        fields = {}
        if changes.name is not None:
            fields[keys.NAME] = changes.name
        if changes.quantity is not None:
            fields[keys.PRODUCT_QUANTITY] = changes.quantity
        if changes.unit is not None:
            fields[keys.PRODUCT_UNIT] = changes.unit.value
        if changes.is_done is not None:
            fields[keys.PRODUCT_DONE] = encode_bool(changes.is_done)
        await self.engine.update_fields(
            keys.product_key(product_id), fields, "product", product_id
        )

    async def rename(self, token: Optional[str], product_id: str, name: str) -> None:
        await self.edit(token, product_id, EditProduct(name=name))

    async def delete(self, token: Optional[str], product_id: str) -> None:
        """
        Remove the product record and its aisle membership in one transaction.

        Raises:
            NotFoundError / PermissionDenied / Unauthorized
            InternalError: the record has no aisle id
        """
        record = keys.product_key(product_id)
        owner = await self.owner_of(product_id)
        await self.guard.check_session(token, owner, "product", product_id)
        aisle_id = await self._parent_id(self.store, product_id)
        if aisle_id is None:
            raise NotFoundError(resource="product", resource_id=product_id)
        members = keys.products_in_aisle_key(aisle_id)

        async def body(tx: StoreTransaction) -> None:
            if await self._parent_id(tx, product_id) != aisle_id:
                raise NotFoundError(resource="product", resource_id=product_id)
            tx.srem(members, product_id)
            tx.delete(record)

        await self.engine.run([record, members], body, operation="delete_product")
        logger.info("Product %s deleted", product_id)

    # ── Cascade helpers ───────────────────────────────────────────────────

    async def purge_in_aisle(self, tx: StoreTransaction, aisle_id: str, batch: WriteBatch) -> None:
        """Queue deletion of every product of `aisle_id` and of the membership set."""
        members = keys.products_in_aisle_key(aisle_id)
        await tx.watch(members)
        for product_id in sorted(await tx.smembers(members)):
            batch.delete(keys.product_key(product_id))
        batch.delete(members)

    def queue_sort_weight(self, batch: WriteBatch, product_id: str, weight: float) -> None:
        batch.hset(keys.product_key(product_id), keys.SORT_WEIGHT, float(weight))

    # ── Internals ─────────────────────────────────────────────────────────

    async def _aisle_owner(self, reader: KeyValueReader, aisle_id: str) -> str:
        owner = await reader.hget(keys.aisle_key(aisle_id), keys.OWNER)
        if owner is None:
            raise NotFoundError(resource="aisle", resource_id=aisle_id)
        return owner

    async def _parent_id(self, reader: KeyValueReader, product_id: str) -> Optional[str]:
        fields = await reader.hget_all(keys.product_key(product_id))
        if not fields:
            return None
        aisle_id = fields.get(keys.PRODUCT_AISLE)
        if not aisle_id:
            raise InternalError(
                message="Product record has no aisle id",
                context={"product_id": product_id},
            )
        return aisle_id
