"""
Efficio Backend — In-Memory Store Unit Tests
==============================================

What we test:
    ✅ Scalars, counters, hashes and sets behave like their Redis counterparts
    ✅ Emptied hashes and sets stop existing
    ✅ Wrong-type access raises StoreError
    ✅ Transactions commit atomically and abort on watched-key changes
    ✅ Keys watched from inside the body are honoured
"""

import pytest

from efficio.exceptions import StoreError, TransactionConflict
from efficio.store import InMemoryStore, WriteBatch
from efficio.store.base import encode_value


class TestPrimitives:
    """Single-key operations outside transactions."""

    def setup_method(self):
        self.store = InMemoryStore()

    @pytest.mark.asyncio
    async def test_missing_reads_return_empty_values(self):
        assert await self.store.get("nope") is None
        assert await self.store.hget("nope", "field") is None
        assert await self.store.hget_all("nope") == {}
        assert await self.store.smembers("nope") == set()
        assert await self.store.exists("nope") is False

    @pytest.mark.asyncio
    async def test_incr_starts_at_zero(self):
        assert await self.store.incr("counter") == 1
        assert await self.store.incr("counter", 5) == 6
        assert await self.store.get("counter") == "6"

    @pytest.mark.asyncio
    async def test_set_if_absent_only_sets_once(self):
        assert await self.store.set_if_absent("salt", "first") is True
        assert await self.store.set_if_absent("salt", "second") is False
        assert await self.store.get("salt") == "first"

    @pytest.mark.asyncio
    async def test_values_are_stored_as_strings(self):
        await self.store.hset_multiple("h", {"weight": 1.5, "count": 3})
        assert await self.store.hget_all("h") == {"weight": "1.5", "count": "3"}

    @pytest.mark.asyncio
    async def test_booleans_must_be_encoded_explicitly(self):
        with pytest.raises(TypeError):
            encode_value(True)

    @pytest.mark.asyncio
    async def test_emptied_hash_disappears(self):
        await self.store.hset("h", "only", "x")
        assert await self.store.hdel("h", "only") is True
        assert await self.store.exists("h") is False

    @pytest.mark.asyncio
    async def test_emptied_set_disappears(self):
        assert await self.store.sadd("s", "a") is True
        assert await self.store.sadd("s", "a") is False
        assert await self.store.srem("s", "a") is True
        assert await self.store.srem("s", "a") is False
        assert await self.store.exists("s") is False

    @pytest.mark.asyncio
    async def test_wrong_type_raises_store_error(self):
        await self.store.sadd("s", "a")
        with pytest.raises(StoreError):
            await self.store.hget("s", "field")

    @pytest.mark.asyncio
    async def test_flush_all_removes_everything(self):
        await self.store.set("a", "1")
        await self.store.hset("b", "f", "v")
        await self.store.sadd("c", "m")
        await self.store.flush_all()
        for key in ("a", "b", "c"):
            assert await self.store.exists(key) is False


class TestTransactions:
    """Watch / queue / commit semantics."""

    def setup_method(self):
        self.store = InMemoryStore()

    @pytest.mark.asyncio
    async def test_commit_applies_queued_writes_and_returns_result(self):
        async def body(tx):
            tx.hset("record", "name", "Kitchen")
            tx.sadd("members", "1")
            return "done"

        assert await self.store.transaction(["record", "members"], body) == "done"
        assert await self.store.hget("record", "name") == "Kitchen"
        assert await self.store.sismember("members", "1") is True

    @pytest.mark.asyncio
    async def test_writes_are_not_visible_before_commit(self):
        async def body(tx):
            tx.hset("record", "name", "Kitchen")
            assert await tx.hget("record", "name") is None

        await self.store.transaction(["record"], body)

    @pytest.mark.asyncio
    async def test_concurrent_write_to_watched_key_aborts(self):
        async def body(tx):
            await self.store.sadd("members", "intruder")
            tx.hset("record", "name", "Kitchen")

        with pytest.raises(TransactionConflict) as exc_info:
            await self.store.transaction(["record", "members"], body)

        assert exc_info.value.context["watched_keys"] == ["members"]
        assert await self.store.exists("record") is False

    @pytest.mark.asyncio
    async def test_delete_and_recreate_still_aborts(self):
        await self.store.hset("record", "name", "a")

        async def body(tx):
            await self.store.delete("record")
            await self.store.hset("record", "name", "a")
            tx.hset("record", "name", "b")

        with pytest.raises(TransactionConflict):
            await self.store.transaction(["record"], body)

    @pytest.mark.asyncio
    async def test_key_watched_inside_body_aborts_on_change(self):
        async def body(tx):
            await tx.watch("late")
            await self.store.set("late", "changed")
            tx.set("result", "x")

        with pytest.raises(TransactionConflict):
            await self.store.transaction([], body)
        assert await self.store.exists("result") is False

    @pytest.mark.asyncio
    async def test_body_exception_commits_nothing(self):
        async def body(tx):
            tx.set("key", "value")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await self.store.transaction(["key"], body)
        assert await self.store.exists("key") is False

    @pytest.mark.asyncio
    async def test_invalid_batch_is_rejected_before_any_write(self):
        await self.store.sadd("a_set", "m")

        async def body(tx):
            tx.set("first", "1")
            tx.hset("a_set", "field", "v")

        with pytest.raises(StoreError):
            await self.store.transaction([], body)
        assert await self.store.exists("first") is False

    @pytest.mark.asyncio
    async def test_queued_batch_from_cascade_walk(self):
        await self.store.hset("child:1", "name", "x")
        await self.store.sadd("children", "1")
        batch = WriteBatch().delete("child:1").delete("children")

        async def body(tx):
            tx.queue(batch)

        await self.store.transaction(batch.keys, body)
        assert await self.store.exists("child:1") is False
        assert await self.store.exists("children") is False
