"""
Efficio Backend — User Service
================================

What:  Registration, login and account deletion.
How:   Credentials are hashed with bcrypt (each hash gets its own generated
       salt, stored next to it). The case-insensitive username index and the
       user record are written in one transaction, so two registrations of
       the same name cannot both succeed.
Who:   Routes POST /api/user, POST /api/login, DELETE /api/user/{id}.

Validation Rules:
    - username: starts with a letter, then letters, digits or underscores
    - email:    syntactically valid address (email-validator, no DNS lookup)
    - password: 8 to 72 bytes (bcrypt only reads the first 72)
"""

import asyncio
import hashlib
import logging
import re
from typing import Optional

import bcrypt
from email_validator import EmailNotValidError, validate_email

from efficio.exceptions import (
    InvalidCredentials,
    NotFoundError,
    Unauthorized,
    UsernameTaken,
    ValidationError,
)
from efficio.schemas.grocery import AuthInfo, ConnectionToken, UserCreate
from efficio.services import keys
from efficio.services.ids import EntityKind, IdAllocator
from efficio.services.sessions import FOREIGN_TOKEN_MESSAGE, SessionManager
from efficio.services.stores import StoreRepository
from efficio.services.transaction import TransactionEngine
from efficio.store import CapabilityStore, StoreTransaction

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-zA-Z][0-9a-zA-Z_]*$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72


def validate_username(username: str) -> None:
    if not USERNAME_PATTERN.match(username or ""):
        raise ValidationError(
            message="Username must start with a letter and contain only letters, digits and underscores",
            field="username",
        )


def validate_user_email(email: str) -> str:
    """Returns the normalized address."""
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(message=str(e), field="email") from e


def validate_password(password: str) -> None:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            message=f"Password must be at least {PASSWORD_MIN_LENGTH} characters",
            field="password",
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(
            message=f"Password must be at most {PASSWORD_MAX_BYTES} bytes",
            field="password",
        )


def hash_secret(secret: bytes, salt: bytes) -> str:
    return bcrypt.hashpw(secret, salt).decode("utf-8")


def email_digest(email: str) -> bytes:
    # Addresses can exceed bcrypt's 72-byte input, so hash a fixed-size digest
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest().encode("ascii")


class UserService:
    """User accounts. Sessions are delegated to SessionManager."""

    def __init__(
        self,
        store: CapabilityStore,
        engine: TransactionEngine,
        ids: IdAllocator,
        sessions: SessionManager,
        stores: StoreRepository,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.store = store
        self.engine = engine
        self.ids = ids
        self.sessions = sessions
        self.stores = stores
        self.bcrypt_rounds = bcrypt_rounds

    async def register(self, data: UserCreate) -> ConnectionToken:
        """
        Create an account and open its first session.

        Raises:
            ValidationError: malformed username, email or password
            UsernameTaken: the lowercased username is already registered
            TransactionConflict: a concurrent registration touched the index
        """
        validate_username(data.username)
        email = validate_user_email(data.email)
        validate_password(data.password)

        index_field = data.username.lower()
        if await self.store.hexists(keys.USERS, index_field):
            raise UsernameTaken(data.username)

        salt_mail = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        salt_password = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        email_hash, password_hash = await asyncio.gather(
            asyncio.to_thread(hash_secret, email_digest(email), salt_mail),
            asyncio.to_thread(hash_secret, data.password.encode("utf-8"), salt_password),
        )

        user_id = await self.ids.next_id(EntityKind.USER)
        record = keys.user_key(user_id)

        async def body(tx: StoreTransaction) -> None:
            if await tx.hexists(keys.USERS, index_field):
                raise UsernameTaken(data.username)
            tx.hset_multiple(
                record,
                {
                    keys.USER_USERNAME: data.username,
                    keys.USER_EMAIL: email_hash,
                    keys.USER_PASSWORD: password_hash,
                    keys.USER_SALT_MAIL: salt_mail.decode("utf-8"),
                    keys.USER_SALT_PASSWORD: salt_password.decode("utf-8"),
                },
            )
            tx.hset(keys.USERS, index_field, user_id)

        await self.engine.run([keys.USERS, record], body, operation="register")
        logger.info("User %s registered", user_id)

        token = self.sessions.generate_token()
        await self.sessions.create_session(token, user_id)
        return ConnectionToken(token=token, user_id=user_id)

    async def login(self, credentials: AuthInfo) -> ConnectionToken:
        """
        Check a username/password pair and open a new session.

        Raises:
            InvalidCredentials: unknown username or wrong password
        """
        user_id = await self.store.hget(keys.USERS, credentials.username.lower())
        if user_id is None:
            raise InvalidCredentials()
        stored = await self.store.hget(keys.user_key(user_id), keys.USER_PASSWORD)
        if stored is None or not await asyncio.to_thread(
            self._check_password, credentials.password, stored
        ):
            logger.info("Failed login for user %s", user_id)
            raise InvalidCredentials()

        token = self.sessions.generate_token()
        await self.sessions.create_session(token, user_id)
        logger.info("User %s logged in", user_id)
        return ConnectionToken(token=token, user_id=user_id)

    async def delete_user(self, token: Optional[str], user_id: str) -> None:
        """
        Delete an account: its stores (cascading), its username index entry,
        its record, then every session it holds.

        Raises:
            Unauthorized: the token is unknown or belongs to another user
            NotFoundError: the user record is gone
        """
        acting = await self.sessions.validate_session(token)
        if acting != user_id:
            raise Unauthorized(message=FOREIGN_TOKEN_MESSAGE)
        record = keys.user_key(user_id)
        username = await self.store.hget(record, keys.USER_USERNAME)
        if username is None:
            raise NotFoundError(resource="user", resource_id=user_id)

        await self.stores.delete_all_for_user(token)

        async def body(tx: StoreTransaction) -> None:
            if await tx.hget(keys.USERS, username.lower()) == user_id:
                tx.hdel(keys.USERS, username.lower())
            tx.delete(record)

        await self.engine.run([keys.USERS, record], body, operation="delete_user")
        # Sessions last: the steps above still authenticate with the token
        await self.sessions.delete_all_sessions_for_user(token)
        logger.info("User %s deleted", user_id)

    @staticmethod
    def _check_password(password: str, stored_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
        except ValueError:
            return False
