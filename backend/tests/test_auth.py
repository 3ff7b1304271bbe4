"""
Unit tests for the identity provider and the authentication endpoints.
"""
import logging
import pytest
from datetime import timedelta
from httpx import AsyncClient

from core.errors import AuthenticationError
from core.security import create_access_token
from services.identity_service import IdentityProvider
from conftest import TEST_PASSWORD, fake


class TestIdentityProvider:
    """authenticate / get_current_identity / end_session."""

    @pytest.mark.asyncio
    async def test_authenticate_and_resolve(self, store, make_user):
        user = await make_user()
        identity = IdentityProvider(store)

        token = await identity.authenticate(user.email, TEST_PASSWORD)

        assert await identity.get_current_identity(token) == user.id

    @pytest.mark.asyncio
    async def test_authenticate_normalizes_email(self, store, make_user):
        user = await make_user(email="Ada.Lovelace+ref@Gmail.com")
        identity = IdentityProvider(store)

        token = await identity.authenticate("adalovelace@gmail.com", TEST_PASSWORD)

        assert user.email == "adalovelace@gmail.com"
        assert await identity.get_current_identity(token) == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, store, make_user):
        user = await make_user()
        identity = IdentityProvider(store)

        with pytest.raises(AuthenticationError):
            await identity.authenticate(user.email, "wrong-password")

    @pytest.mark.asyncio
    async def test_unknown_email(self, store):
        with pytest.raises(AuthenticationError):
            await IdentityProvider(store).authenticate("nobody@example.com", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_end_session_revokes_token(self, store, make_user):
        user = await make_user()
        identity = IdentityProvider(store)
        token = await identity.authenticate(user.email, TEST_PASSWORD)
        other = await identity.authenticate(user.email, TEST_PASSWORD)

        await identity.end_session(token)

        assert await identity.get_current_identity(token) is None
        assert await identity.get_current_identity(other) == user.id

    @pytest.mark.asyncio
    async def test_garbage_and_sessionless_tokens(self, store, make_user):
        user = await make_user()
        identity = IdentityProvider(store)
        forged = create_access_token({"sub": str(user.id)}, expires_delta=timedelta(minutes=5))

        assert await identity.get_current_identity("not-a-jwt") is None
        assert await identity.get_current_identity(forged) is None
        with pytest.raises(AuthenticationError):
            await identity.end_session("not-a-jwt")

    @pytest.mark.asyncio
    async def test_session_events_are_logged(self, store, make_user, caplog):
        user = await make_user()
        identity = IdentityProvider(store)

        with caplog.at_level(logging.INFO, logger="services.identity_service"):
            token = await identity.authenticate(user.email, TEST_PASSWORD)
            await identity.end_session(token)
            with pytest.raises(AuthenticationError):
                await identity.authenticate(user.email, "wrong-password")

        messages = [r.getMessage() for r in caplog.records if r.name == "services.identity_service"]
        assert f"Session opened for user {user.id}" in messages
        assert f"Session closed for user {user.id}" in messages
        assert f"Login rejected for {user.email}" in messages

    @pytest.mark.asyncio
    async def test_expired_token(self, store, make_user):
        user = await make_user()
        identity = IdentityProvider(store, token_ttl=timedelta(seconds=-1))

        token = await identity.authenticate(user.email, TEST_PASSWORD)

        assert await identity.get_current_identity(token) is None


class TestAuthEndpoints:
    """Signup, login and logout over HTTP."""

    @pytest.mark.asyncio
    async def test_signup_success(self, async_client: AsyncClient):
        response = await async_client.post(
            "/signup",
            json={"email": fake.unique.email(), "password": TEST_PASSWORD, "full_name": fake.name()},
        )

        assert response.status_code == 201
        user = response.json()["user"]
        assert len(user["referral_code"]) == 8
        assert user["available_balance"] == 0
        assert user["referral_link"].endswith(f"?ref={user['referral_code']}")
        assert "hashed_password" not in user

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, async_client: AsyncClient, make_user):
        user = await make_user()

        response = await async_client.post(
            "/signup",
            json={"email": user.email, "password": TEST_PASSWORD, "full_name": "Someone Else"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_signup_invalid_payload(self, async_client: AsyncClient):
        response = await async_client.post(
            "/signup",
            json={"email": "not-an-email", "password": TEST_PASSWORD, "full_name": "X"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_login_and_logout(self, async_client: AsyncClient, make_user, login):
        user = await make_user()
        headers = await login(user.email)

        assert (await async_client.get("/users/me", headers=headers)).status_code == 200

        response = await async_client.post("/logout", headers=headers)
        assert response.status_code == 200

        response = await async_client.get("/users/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, async_client: AsyncClient, make_user):
        user = await make_user()

        response = await async_client.post("/login", data={"username": user.email, "password": "nope-nope"})

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_missing_token(self, async_client: AsyncClient):
        response = await async_client.get("/users/me")

        assert response.status_code == 401
