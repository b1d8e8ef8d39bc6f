"""
Efficio Backend — Product Repository Unit Tests
=================================================

What we test:
    ✅ Creation defaults and weights
    ✅ Partial edits with one multi-field write
    ✅ Delete removes the record and the aisle membership together
    ✅ Ownership on every mutation
"""

import pytest

from efficio.exceptions import NotFoundError, PermissionDenied, ValidationError
from efficio.schemas.grocery import EditProduct, Unit
from efficio.services import keys


@pytest.fixture
def aisle_factory(services, alice):
    async def _make():
        kitchen = await services.stores.create(alice.token, "Kitchen")
        return await services.aisles.create(alice.token, kitchen.store_id, "Spices")

    return _make


class TestCreateProduct:

    @pytest.mark.asyncio
    async def test_defaults(self, services, store, alice, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")

        assert (salt.quantity, salt.unit, salt.is_done, salt.sort_weight) == (
            1,
            Unit.COUNT,
            False,
            0,
        )
        assert await store.hget_all(keys.product_key(salt.product_id)) == {
            keys.NAME: "Salt",
            keys.PRODUCT_QUANTITY: "1",
            keys.PRODUCT_UNIT: "count",
            keys.PRODUCT_DONE: "0",
            keys.SORT_WEIGHT: "0.0",
            keys.OWNER: alice.user_id,
            keys.PRODUCT_AISLE: aisle.aisle_id,
        }

    @pytest.mark.asyncio
    async def test_second_product_weight(self, services, alice, aisle_factory):
        aisle = await aisle_factory()
        await services.products.create(alice.token, aisle.aisle_id, "Salt")
        pepper = await services.products.create(alice.token, aisle.aisle_id, "Pepper")
        assert pepper.sort_weight == 1

    @pytest.mark.asyncio
    async def test_foreign_aisle_is_denied(self, services, store, bob, aisle_factory):
        aisle = await aisle_factory()
        with pytest.raises(PermissionDenied):
            await services.products.create(bob.token, aisle.aisle_id, "Salt")
        assert await store.exists(keys.products_in_aisle_key(aisle.aisle_id)) is False

    @pytest.mark.asyncio
    async def test_missing_aisle(self, services, alice):
        with pytest.raises(NotFoundError):
            await services.products.create(alice.token, "missing", "Salt")


class TestEditProduct:

    @pytest.mark.asyncio
    async def test_partial_edit(self, services, alice, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")

        await services.products.edit(
            alice.token, salt.product_id, EditProduct(quantity=500, unit=Unit.GRAM, is_done=True)
        )

        edited = await services.products.get(salt.product_id)
        assert edited.name == "Salt"
        assert (edited.quantity, edited.unit, edited.is_done) == (500, Unit.GRAM, True)

    @pytest.mark.asyncio
    async def test_rename(self, services, alice, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")
        await services.products.rename(alice.token, salt.product_id, "Sea salt")
        assert (await services.products.get(salt.product_id)).name == "Sea salt"

    @pytest.mark.asyncio
    async def test_empty_edit_is_invalid(self, services, alice, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")
        with pytest.raises(ValidationError):
            await services.products.edit(alice.token, salt.product_id, EditProduct())

    @pytest.mark.asyncio
    async def test_edit_by_other_user(self, services, alice, bob, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")
        with pytest.raises(PermissionDenied):
            await services.products.edit(bob.token, salt.product_id, EditProduct(is_done=True))
        assert (await services.products.get(salt.product_id)).is_done is False

    def test_unknown_stored_unit_reads_as_count(self):
        assert Unit.parse("furlong") is Unit.COUNT
        assert Unit.parse(None) is Unit.COUNT


class TestDeleteProduct:

    @pytest.mark.asyncio
    async def test_delete(self, services, store, alice, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")
        pepper = await services.products.create(alice.token, aisle.aisle_id, "Pepper")

        await services.products.delete(alice.token, salt.product_id)

        assert await store.exists(keys.product_key(salt.product_id)) is False
        assert await store.smembers(keys.products_in_aisle_key(aisle.aisle_id)) == {
            pepper.product_id
        }

    @pytest.mark.asyncio
    async def test_delete_by_other_user(self, services, store, alice, bob, aisle_factory):
        aisle = await aisle_factory()
        salt = await services.products.create(alice.token, aisle.aisle_id, "Salt")
        with pytest.raises(PermissionDenied):
            await services.products.delete(bob.token, salt.product_id)
        assert await store.exists(keys.product_key(salt.product_id)) is True

    @pytest.mark.asyncio
    async def test_delete_missing(self, services, alice):
        with pytest.raises(NotFoundError):
            await services.products.delete(alice.token, "missing")
