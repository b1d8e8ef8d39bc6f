"""
Efficio Backend — Store Repository Unit Tests
===============================================

What we test:
    ✅ Create / rename / get / list, owner-only
    ✅ Cascade completeness: deleting a store removes every aisle, product
       and membership set below it, in one commit
    ✅ A failed cascade leaves the store untouched
"""

import pytest

from efficio.exceptions import NotFoundError, PermissionDenied, TransactionConflict, Unauthorized
from efficio.services import keys


class TestStoreCrud:

    @pytest.mark.asyncio
    async def test_create_store(self, services, store, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        assert kitchen.name == "Kitchen"
        assert kitchen.aisles == []
        assert await store.hget_all(keys.store_key(kitchen.store_id)) == {
            keys.NAME: "Kitchen",
            keys.OWNER: alice.user_id,
        }
        assert await store.sismember(keys.user_stores_key(alice.user_id), kitchen.store_id)

    @pytest.mark.asyncio
    async def test_create_requires_a_session(self, services):
        with pytest.raises(Unauthorized):
            await services.stores.create(None, "Kitchen")

    @pytest.mark.asyncio
    async def test_list_is_shallow_and_per_user(self, services, alice, bob):
        await services.stores.create(alice.token, "Market")
        await services.stores.create(alice.token, "Bakery")
        await services.stores.create(bob.token, "Bob's")

        listing = await services.stores.list_for_user(alice.token)
        assert [s.name for s in listing.stores] == ["Bakery", "Market"]

    @pytest.mark.asyncio
    async def test_rename(self, services, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        await services.stores.rename(alice.token, kitchen.store_id, "Pantry")
        assert (await services.stores.get(alice.token, kitchen.store_id)).name == "Pantry"

    @pytest.mark.asyncio
    async def test_other_user_cannot_touch_store(self, services, store, alice, bob):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        before = await store.hget_all(keys.store_key(kitchen.store_id))

        with pytest.raises(PermissionDenied):
            await services.stores.rename(bob.token, kitchen.store_id, "Mine")
        with pytest.raises(PermissionDenied):
            await services.stores.get(bob.token, kitchen.store_id)
        with pytest.raises(PermissionDenied):
            await services.stores.delete(bob.token, kitchen.store_id)

        assert await store.hget_all(keys.store_key(kitchen.store_id)) == before

    @pytest.mark.asyncio
    async def test_missing_store_is_not_found(self, services, alice):
        with pytest.raises(NotFoundError):
            await services.stores.rename(alice.token, "missing", "x")

    @pytest.mark.asyncio
    async def test_get_returns_ordered_tree(self, services, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        spices = await services.aisles.create(alice.token, kitchen.store_id, "Spices")
        produce = await services.aisles.create(alice.token, kitchen.store_id, "Produce")
        await services.products.create(alice.token, spices.aisle_id, "Salt")
        await services.products.create(alice.token, spices.aisle_id, "Pepper")

        full = await services.stores.get(alice.token, kitchen.store_id)

        assert [a.aisle_id for a in full.aisles] == [spices.aisle_id, produce.aisle_id]
        assert [p.name for p in full.aisles[0].products] == ["Salt", "Pepper"]
        assert full.aisles[1].products == []


class TestStoreCascade:

    @pytest.mark.asyncio
    async def test_delete_store_scenario(self, services, store, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        a1 = await services.aisles.create(alice.token, kitchen.store_id, "Spices")
        a2 = await services.aisles.create(alice.token, kitchen.store_id, "Produce")
        p1 = await services.products.create(alice.token, a1.aisle_id, "Salt")
        assert (a1.sort_weight, a2.sort_weight, p1.sort_weight) == (0, 1, 0)

        await services.stores.delete(alice.token, kitchen.store_id)

        for key in (
            keys.store_key(kitchen.store_id),
            keys.aisles_in_store_key(kitchen.store_id),
            keys.aisle_key(a1.aisle_id),
            keys.aisle_key(a2.aisle_id),
            keys.products_in_aisle_key(a1.aisle_id),
            keys.product_key(p1.product_id),
        ):
            assert await store.exists(key) is False, key
        assert not await store.sismember(
            keys.user_stores_key(alice.user_id), kitchen.store_id
        )

    @pytest.mark.asyncio
    async def test_cascade_counts(self, services, store, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        children = []
        for aisle_name in ("A", "B", "C"):
            aisle = await services.aisles.create(alice.token, kitchen.store_id, aisle_name)
            children.append(keys.aisle_key(aisle.aisle_id))
            for product_name in ("x", "y"):
                product = await services.products.create(alice.token, aisle.aisle_id, product_name)
                children.append(keys.product_key(product.product_id))

        await services.stores.delete(alice.token, kitchen.store_id)

        assert len(children) == 9
        for key in children:
            assert await store.exists(key) is False

    @pytest.mark.asyncio
    async def test_sibling_store_survives(self, services, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        garage = await services.stores.create(alice.token, "Garage")
        await services.stores.delete(alice.token, kitchen.store_id)
        listing = await services.stores.list_for_user(alice.token)
        assert [s.store_id for s in listing.stores] == [garage.store_id]

    @pytest.mark.asyncio
    async def test_concurrent_aisle_insert_aborts_cascade(self, services, store, alice):
        kitchen = await services.stores.create(alice.token, "Kitchen")
        aisle = await services.aisles.create(alice.token, kitchen.store_id, "Spices")
        original = services.aisles.purge_in_store

        async def racing_purge(tx, store_id, batch):
            await original(tx, store_id, batch)
            # Another request adds an aisle after the walk read the membership set
            await store.sadd(keys.aisles_in_store_key(store_id), "late-aisle")

        services.aisles.purge_in_store = racing_purge
        with pytest.raises(TransactionConflict):
            await services.stores.delete(alice.token, kitchen.store_id)

        assert await store.exists(keys.store_key(kitchen.store_id)) is True
        assert await store.exists(keys.aisle_key(aisle.aisle_id)) is True
