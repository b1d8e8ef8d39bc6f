"""
Efficio Backend — User Service Unit Tests
===========================================

What we test:
    ✅ Registration validates input and opens a session
    ✅ Usernames are unique case-insensitively
    ✅ Credentials are stored hashed, never in clear
    ✅ Login succeeds only with the right password
    ✅ Account deletion cascades stores and revokes every session
"""

import pytest

from efficio.exceptions import (
    InvalidCredentials,
    NotFoundError,
    Unauthorized,
    UsernameTaken,
    ValidationError,
)
from efficio.schemas.grocery import AuthInfo, UserCreate
from efficio.services import keys


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_opens_a_session(self, services):
        result = await services.users.register(
            UserCreate(username="alice", email="alice@gmail.com", password="correct horse")
        )
        assert await services.sessions.validate_session(result.token) == result.user_id

    @pytest.mark.asyncio
    async def test_credentials_are_hashed(self, services, store, alice):
        record = await store.hget_all(keys.user_key(alice.user_id))
        assert record[keys.USER_USERNAME] == "alice"
        assert record[keys.USER_PASSWORD] != "correct horse"
        assert record[keys.USER_PASSWORD].startswith("$2")
        assert "alice@gmail.com" not in record[keys.USER_EMAIL]
        assert record[keys.USER_SALT_PASSWORD] and record[keys.USER_SALT_MAIL]

    @pytest.mark.asyncio
    async def test_username_is_case_insensitive(self, register_user):
        await register_user("toto")
        with pytest.raises(UsernameTaken, match="Toto"):
            await register_user("Toto")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username", ["1abc", "_abc", "ab-c", "", "a b"])
    async def test_invalid_username(self, services, username):
        with pytest.raises(ValidationError) as exc_info:
            await services.users.register(
                UserCreate(username=username, email="x@gmail.com", password="correct horse")
            )
        assert exc_info.value.field == "username"

    @pytest.mark.asyncio
    async def test_invalid_email(self, services):
        with pytest.raises(ValidationError) as exc_info:
            await services.users.register(
                UserCreate(username="alice", email="not-an-email", password="correct horse")
            )
        assert exc_info.value.field == "email"

    @pytest.mark.asyncio
    async def test_short_password(self, services):
        with pytest.raises(ValidationError) as exc_info:
            await services.users.register(
                UserCreate(username="alice", email="alice@gmail.com", password="short")
            )
        assert exc_info.value.field == "password"

    @pytest.mark.asyncio
    async def test_failed_validation_writes_nothing(self, services, store):
        with pytest.raises(ValidationError):
            await services.users.register(
                UserCreate(username="alice", email="alice@gmail.com", password="short")
            )
        assert await store.exists(keys.USERS) is False


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_returns_a_new_token(self, services, alice):
        result = await services.users.login(AuthInfo(username="ALICE", password="correct horse"))
        assert result.user_id == alice.user_id
        assert result.token != alice.token
        assert await services.sessions.validate_session(result.token) == alice.user_id
        # The registration session stays valid
        assert await services.sessions.validate_session(alice.token) == alice.user_id

    @pytest.mark.asyncio
    async def test_wrong_password(self, services, alice):
        with pytest.raises(InvalidCredentials):
            await services.users.login(AuthInfo(username="alice", password="wrong horse"))

    @pytest.mark.asyncio
    async def test_unknown_user(self, services):
        with pytest.raises(InvalidCredentials):
            await services.users.login(AuthInfo(username="ghost", password="correct horse"))


class TestDeleteUser:

    @pytest.mark.asyncio
    async def test_delete_user_removes_everything(self, services, store, alice):
        second = await services.users.login(AuthInfo(username="alice", password="correct horse"))
        kitchen = await services.stores.create(alice.token, "Kitchen")
        aisle = await services.aisles.create(alice.token, kitchen.store_id, "Spices")
        product = await services.products.create(alice.token, aisle.aisle_id, "Salt")

        await services.users.delete_user(alice.token, alice.user_id)

        for key in (
            keys.user_key(alice.user_id),
            keys.user_stores_key(alice.user_id),
            keys.user_sessions_key(alice.user_id),
            keys.store_key(kitchen.store_id),
            keys.aisle_key(aisle.aisle_id),
            keys.product_key(product.product_id),
        ):
            assert await store.exists(key) is False, key
        assert await store.hexists(keys.USERS, "alice") is False
        for token in (alice.token, second.token):
            with pytest.raises(Unauthorized):
                await services.sessions.validate_session(token)

    @pytest.mark.asyncio
    async def test_username_can_be_registered_again(self, services, alice, register_user):
        await services.users.delete_user(alice.token, alice.user_id)
        again = await register_user("Alice")
        assert again.user_id != alice.user_id

    @pytest.mark.asyncio
    async def test_cannot_delete_another_user(self, services, store, alice, bob):
        with pytest.raises(Unauthorized):
            await services.users.delete_user(alice.token, bob.user_id)
        assert await store.exists(keys.user_key(bob.user_id)) is True

    @pytest.mark.asyncio
    async def test_deleted_record_is_not_found(self, services, store, alice):
        await store.delete(keys.user_key(alice.user_id))
        with pytest.raises(NotFoundError):
            await services.users.delete_user(alice.token, alice.user_id)

    @pytest.mark.asyncio
    async def test_other_users_data_survives(self, services, alice, bob):
        theirs = await services.stores.create(bob.token, "Bob's")
        await services.users.delete_user(alice.token, alice.user_id)
        listing = await services.stores.list_for_user(bob.token)
        assert [s.store_id for s in listing.stores] == [theirs.store_id]
