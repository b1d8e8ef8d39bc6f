"""
Efficio Backend — Id Allocator
================================

What:  Hands out unique, non-guessable ids for users, stores, aisles and products.
How:   Atomic INCR of a per-kind counter, then sha256("{counter}:{salt}").
       The salt is a random per-kind string created once with SET NX, so two
       processes racing on first use still agree on it.
Who:   Repositories, right before they create a record.

Properties:
    - Two calls for the same kind never return the same id (counter is atomic).
    - Ids do not reveal the counter without the salt.
    - An id is 64 lowercase hex characters.
"""

import hashlib
import logging
import re
import secrets
from enum import Enum
from typing import Callable, Optional

from efficio.exceptions import InternalError
from efficio.services import keys
from efficio.store import CapabilityStore

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class EntityKind(str, Enum):
    USER = "user"
    STORE = "store"
    AISLE = "aisle"
    PRODUCT = "product"


def new_salt() -> str:
    return secrets.token_hex(16)


def hash_id(counter: int, salt: str) -> str:
    return hashlib.sha256(f"{counter}:{salt}".encode("utf-8")).hexdigest()


def is_valid_id(value: Optional[str]) -> bool:
    return bool(value) and _ID_PATTERN.match(value) is not None


class IdAllocator:
    """Counter-plus-salt id generator backed by the capability store."""

    def __init__(
        self,
        store: CapabilityStore,
        salt_factory: Callable[[], str] = new_salt,
    ) -> None:
        self.store = store
        self._salt_factory = salt_factory

    async def next_id(self, kind: EntityKind) -> str:
        """
        Allocate the next id of `kind`.

        Raises:
            InternalError: the stored salt is empty or the digest is malformed
            StoreError: the store failed
        """
        kind = EntityKind(kind)
        counter = await self.store.incr(keys.counter_key(kind.value))
        salt = await self._salt(kind)
        new_id = hash_id(counter, salt)
        if not is_valid_id(new_id):
            raise InternalError(
                message="Could not allocate an id",
                context={"kind": kind.value, "counter": counter},
            )
        return new_id

    async def _salt(self, kind: EntityKind) -> str:
        key = keys.salt_key(kind.value)
        salt = await self.store.get(key)
        if salt is None:
            if await self.store.set_if_absent(key, self._salt_factory()):
                logger.info("Created id salt for %s", kind.value)
            salt = await self.store.get(key)
        if not salt:
            raise InternalError(
                message="Could not allocate an id",
                context={"kind": kind.value, "reason": "missing id salt"},
            )
        return salt
