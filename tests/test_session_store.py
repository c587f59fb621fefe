"""
Admin session store and account service tests.
"""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from dotareg.errors import AuthenticationError, ConflictError, InputError, PermissionDeniedError
from dotareg.models.models import AdminRole, AdminSession, utcnow
from dotareg.services import auth_service
from dotareg.services.session_store import TOKEN_PREFIX, SessionStore
from tests.conftest import ADMIN_PASSWORD, make_admin


# ─────────────────────────── SessionStore ────────────────────────────────────

class TestSessionStore:
    async def test_create_then_validate(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        admin_session = await session_store.create_session(user)
        assert admin_session.id.startswith(TOKEN_PREFIX)
        assert admin_session.role == AdminRole.ADMIN

        found = await session_store.validate(admin_session.id)
        assert found is not None
        assert found.id == user.id

    async def test_tokens_are_unique(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        first = await session_store.create_session(user)
        second = await session_store.create_session(user)
        assert first.id != second.id

    async def test_unknown_and_empty_tokens(self, session_store) -> None:
        assert await session_store.validate("session_nope") is None
        assert await session_store.validate("") is None
        assert await session_store.validate(None) is None

    async def test_expired_token_is_invalid_and_removed(self, async_session) -> None:
        user = await make_admin(async_session)
        store = SessionStore(async_session, timedelta(seconds=-1))
        admin_session = await store.create_session(user)
        token = admin_session.id
        await async_session.commit()

        assert await store.validate(token) is None
        await async_session.commit()
        remaining = (await async_session.execute(
            select(AdminSession.id).where(AdminSession.id == token)
        )).scalar_one_or_none()
        assert remaining is None

    async def test_destroy(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        admin_session = await session_store.create_session(user)
        await session_store.destroy(admin_session.id)
        assert await session_store.validate(admin_session.id) is None

    async def test_destroy_all_for_user(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        tokens = [(await session_store.create_session(user)).id for _ in range(3)]
        await session_store.destroy_all_for(user.id)
        for token in tokens:
            assert await session_store.validate(token) is None

    async def test_sweep_removes_only_expired(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        live = await session_store.create_session(user)
        stale_store = SessionStore(async_session, timedelta(hours=-2))
        await stale_store.create_session(user)
        await stale_store.create_session(user)

        assert await session_store.sweep_expired() == 2
        assert await session_store.validate(live.id) is not None

    async def test_sweep_with_future_clock(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        await session_store.create_session(user)
        assert await session_store.sweep_expired(now=utcnow() + timedelta(days=2)) == 1

    async def test_deactivated_user_is_rejected(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        admin_session = await session_store.create_session(user)
        user.is_active = False
        await async_session.flush()
        assert await session_store.validate(admin_session.id) is None


# ─────────────────────────── Login & passwords ───────────────────────────────

class TestAuthentication:
    def test_hash_roundtrip(self) -> None:
        hashed = auth_service.hash_password("Secr3tPass")
        assert hashed != "Secr3tPass"
        assert auth_service.verify_password("Secr3tPass", hashed)
        assert not auth_service.verify_password("wrong", hashed)

    def test_plaintext_hash_never_verifies(self) -> None:
        assert not auth_service.verify_password("Secr3tPass", "Secr3tPass")

    async def test_login_is_case_insensitive_on_username(self, async_session, session_store) -> None:
        await make_admin(async_session, username="Organiser")
        user, admin_session = await auth_service.authenticate(
            async_session, session_store, "organiser", ADMIN_PASSWORD
        )
        assert user.username == "Organiser"
        assert admin_session.user_id == user.id

    @pytest.mark.parametrize("username,password", [
        ("organiser", "wrong"),
        ("nobody", ADMIN_PASSWORD),
    ])
    async def test_bad_credentials_share_one_message(
        self, async_session, session_store, username, password
    ) -> None:
        await make_admin(async_session)
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await auth_service.authenticate(async_session, session_store, username, password)

    async def test_inactive_account_cannot_login(self, async_session, session_store) -> None:
        user = await make_admin(async_session)
        user.is_active = False
        await async_session.flush()
        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(async_session, session_store, "organiser", ADMIN_PASSWORD)

    async def test_change_password(self, async_session) -> None:
        user = await make_admin(async_session)
        await auth_service.change_password(async_session, user, ADMIN_PASSWORD, "N3wPassword")
        assert auth_service.verify_password("N3wPassword", user.password_hash)

    async def test_change_password_rejects_wrong_current(self, async_session) -> None:
        user = await make_admin(async_session)
        with pytest.raises(InputError, match="incorrect"):
            await auth_service.change_password(async_session, user, "nope", "N3wPassword")

    async def test_change_password_rejects_same_value(self, async_session) -> None:
        user = await make_admin(async_session)
        with pytest.raises(InputError, match="different"):
            await auth_service.change_password(async_session, user, ADMIN_PASSWORD, ADMIN_PASSWORD)


# ─────────────────────────── User management ─────────────────────────────────

class TestUserManagement:
    async def test_duplicate_username(self, async_session) -> None:
        await make_admin(async_session)
        with pytest.raises(ConflictError) as exc_info:
            await auth_service.create_user(async_session, "ORGANISER", ADMIN_PASSWORD)
        assert exc_info.value.field == "username"

    async def test_cannot_delete_self(self, async_session) -> None:
        root = await make_admin(async_session, "root", role=AdminRole.SUPERADMIN)
        with pytest.raises(PermissionDeniedError):
            await auth_service.delete_user(async_session, root, root.id)

    async def test_delete_user_drops_sessions(self, async_session, session_store) -> None:
        root = await make_admin(async_session, "root", role=AdminRole.SUPERADMIN)
        user = await make_admin(async_session)
        admin_session = await session_store.create_session(user)
        token = admin_session.id

        await auth_service.delete_user(async_session, root, user.id)
        await async_session.commit()
        async_session.expunge_all()

        assert await session_store.validate(token) is None
        assert await auth_service.get_user_by_username(async_session, "organiser") is None

    async def test_deactivate_user(self, async_session, session_store) -> None:
        root = await make_admin(async_session, "root", role=AdminRole.SUPERADMIN)
        user = await make_admin(async_session)
        admin_session = await session_store.create_session(user)

        updated = await auth_service.set_user_active(async_session, root, user.id, False)
        assert updated.is_active is False
        assert await session_store.validate(admin_session.id) is None

    async def test_bootstrap_only_when_empty(self, async_session) -> None:
        created = await auth_service.ensure_bootstrap_admin(async_session, "root", "Sup3rSecret")
        assert created is not None and created.is_superadmin
        again = await auth_service.ensure_bootstrap_admin(async_session, "other", "Sup3rSecret")
        assert again is None

    async def test_bootstrap_needs_password(self, async_session) -> None:
        assert await auth_service.ensure_bootstrap_admin(async_session, "root", None) is None
