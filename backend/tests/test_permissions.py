"""
Efficio Backend — Permission Guard Unit Tests
===============================================
"""

import pytest

from efficio.exceptions import PermissionDenied, Unauthorized
from efficio.services.permissions import check_ownership


class TestCheckOwnership:

    def test_owner_passes(self):
        check_ownership("u1", "u1")

    def test_other_user_is_denied(self):
        with pytest.raises(PermissionDenied) as exc_info:
            check_ownership("u2", "u1", "store", "s1")
        assert exc_info.value.context == {"resource": "store", "resource_id": "s1"}


class TestCheckSession:

    @pytest.mark.asyncio
    async def test_returns_acting_user(self, services, alice):
        assert await services.guard.check_session(alice.token, alice.user_id) == alice.user_id

    @pytest.mark.asyncio
    async def test_foreign_owner_is_denied(self, services, alice, bob):
        with pytest.raises(PermissionDenied):
            await services.guard.check_session(alice.token, bob.user_id)

    @pytest.mark.asyncio
    async def test_unknown_token_is_unauthorized_before_ownership(self, services, alice):
        with pytest.raises(Unauthorized):
            await services.guard.check_session("not-a-token", alice.user_id)
