"""
Efficio Backend — Session Manager
===================================

What:  Opaque bearer tokens bound to users.
How:   Two structures kept in step by transactions: the global `sessions`
       hash (token → user id) and a per-user set of tokens. A token is
       valid only while it appears in both.
Who:   UserService (login/register/logout/delete) and every service that
       turns a token into an acting user id.
"""

import logging
import secrets
from typing import Optional

from efficio.exceptions import EfficioError, InternalError, Unauthorized
from efficio.services import keys
from efficio.services.transaction import TransactionEngine
from efficio.store import CapabilityStore, StoreTransaction

logger = logging.getLogger(__name__)

FOREIGN_TOKEN_MESSAGE = "x-auth-token does not belong to this user"


def generate_token(nbytes: int = 32) -> str:
    """Random hex token from the OS CSPRNG (`nbytes` bytes of entropy)."""
    return secrets.token_hex(nbytes)


class SessionManager:
    """
    Creates, validates and revokes session tokens.

    Methods taking only a token resolve the user through the `sessions` hash;
    methods taking an expected user id additionally require that the token
    belongs to that user.
    """

    def __init__(
        self,
        store: CapabilityStore,
        engine: TransactionEngine,
        token_bytes: int = 32,
    ) -> None:
        self.store = store
        self.engine = engine
        self.token_bytes = token_bytes

    def generate_token(self) -> str:
        return generate_token(self.token_bytes)

    async def resolve_user(self, token: Optional[str]) -> str:
        """
        Return the user id bound to `token`.

        Raises:
            Unauthorized: the token is missing or not bound to any user
        """
        if not token:
            raise Unauthorized()
        user_id = await self.store.hget(keys.SESSIONS, token)
        if user_id is None:
            raise Unauthorized()
        return user_id

    async def create_session(self, token: str, user_id: str) -> None:
        """
        Bind a fresh token to `user_id` in both structures atomically.

        Raises:
            InternalError: the token is already bound (collision)
            TransactionConflict: a concurrent session change touched the same keys
        """
        if await self.store.hexists(keys.SESSIONS, token):
            raise InternalError(message="Auth already exists")
        per_user = keys.user_sessions_key(user_id)

        async def body(tx: StoreTransaction) -> None:
            if await tx.hexists(keys.SESSIONS, token):
                raise InternalError(message="Auth already exists")
            tx.hset(keys.SESSIONS, token, user_id)
            tx.sadd(per_user, token)

        await self.engine.run([keys.SESSIONS, per_user], body, operation="create_session")
        logger.info("Session created for user %s", user_id)

    async def validate_session(self, token: Optional[str]) -> str:
        """
        Check that `token` is present in both the global hash and its user's set.

        Returns:
            The user id the token belongs to.

        Raises:
            Unauthorized: "Not logged in" when the token is unknown, or the
                          foreign-token message when the two structures disagree
        """
        user_id = await self.resolve_user(token)
        if not await self.store.sismember(keys.user_sessions_key(user_id), token):
            raise Unauthorized(message=FOREIGN_TOKEN_MESSAGE)
        return user_id

    async def delete_session(self, token: str, expected_user_id: str) -> None:
        """
        Revoke `token`, which must belong to `expected_user_id`.

        Raises:
            Unauthorized: the token is unknown or belongs to somebody else
        """
        per_user = keys.user_sessions_key(expected_user_id)

        async def body(tx: StoreTransaction) -> None:
            owner = await tx.hget(keys.SESSIONS, token)
            if owner is None or owner != expected_user_id:
                raise Unauthorized(message=FOREIGN_TOKEN_MESSAGE)
            tx.hdel(keys.SESSIONS, token)
            tx.srem(per_user, token)

        await self.engine.run([keys.SESSIONS, per_user], body, operation="delete_session")
        logger.info("Session revoked for user %s", expected_user_id)

    async def logout(self, token: Optional[str], user_id: str) -> None:
        """Revoke the caller's own token after checking it belongs to `user_id`."""
        acting = await self.validate_session(token)
        if acting != user_id:
            raise Unauthorized(message=FOREIGN_TOKEN_MESSAGE)
        await self.delete_session(token, user_id)

    async def delete_all_sessions_for_user(self, token: Optional[str]) -> int:
        """
        Revoke every token of the user owning `token`, `token` included.

        Each token is revoked in its own transaction. A failure does not stop
        the loop; the first failure is re-raised once every token was tried.

        Returns:
            Number of tokens revoked.
        """
        user_id = await self.resolve_user(token)
        tokens = await self.store.smembers(keys.user_sessions_key(user_id))

        revoked = 0
        first_error: Optional[EfficioError] = None
        for each in sorted(tokens):
            try:
                await self.delete_session(each, user_id)
                revoked += 1
            except EfficioError as e:
                logger.warning(
                    "Could not revoke a session of user %s: %s", user_id, e.message
                )
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
        logger.info("Revoked %d sessions of user %s", revoked, user_id)
        return revoked
