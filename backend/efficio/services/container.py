"""
Efficio Backend — Service Container
=====================================

What:  Builds every service around one capability store handle.
Who:   The FastAPI lifespan (efficio.main) and the test fixtures.
"""

from efficio.services.aisles import AisleRepository
from efficio.services.ids import IdAllocator
from efficio.services.ordering import ReorderService
from efficio.services.permissions import PermissionGuard
from efficio.services.products import ProductRepository
from efficio.services.sessions import SessionManager
from efficio.services.stores import StoreRepository
from efficio.services.transaction import TransactionEngine
from efficio.services.users import UserService
from efficio.store import CapabilityStore


class ServiceContainer:
    """Explicitly wired services; nothing here is a module-level global."""

    def __init__(
        self,
        store: CapabilityStore,
        token_bytes: int = 32,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.store = store
        self.engine = TransactionEngine(store)
        self.ids = IdAllocator(store)
        self.sessions = SessionManager(store, self.engine, token_bytes)
        self.guard = PermissionGuard(self.sessions)
        self.products = ProductRepository(store, self.engine, self.ids, self.sessions, self.guard)
        self.aisles = AisleRepository(
            store, self.engine, self.ids, self.sessions, self.guard, self.products
        )
        self.stores = StoreRepository(
            store, self.engine, self.ids, self.sessions, self.guard, self.aisles
        )
        self.users = UserService(
            store, self.engine, self.ids, self.sessions, self.stores, bcrypt_rounds
        )
        self.reorder = ReorderService(self.engine, self.sessions, self.aisles, self.products)

    @classmethod
    def from_settings(cls, store: CapabilityStore, config) -> "ServiceContainer":
        return cls(
            store,
            token_bytes=config.session_token_bytes,
            bcrypt_rounds=config.bcrypt_rounds,
        )
