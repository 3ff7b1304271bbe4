"""
Unit tests for admin endpoints.
"""
import pytest
from httpx import AsyncClient


async def _file_withdrawal(async_client: AsyncClient, headers, amount=600) -> dict:
    response = await async_client.post(
        "/wallet/withdrawals",
        json={"amount": amount, "account_name": "Ada Obi", "account_number": "0123456789", "bank_name": "First Bank"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["withdrawal"]


class TestAdminAccess:
    """Every admin route is closed to regular users."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/admin/users", "/admin/withdrawals", "/admin/stats"])
    async def test_non_admin_forbidden(self, async_client: AsyncClient, make_user, login, path):
        user = await make_user()

        response = await async_client.get(path, headers=await login(user.email))

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    @pytest.mark.asyncio
    async def test_non_admin_cannot_process(self, async_client: AsyncClient, make_user, set_balance, login):
        user = await make_user()
        await set_balance(user.id, "1000")
        headers = await login(user.email)
        withdrawal = await _file_withdrawal(async_client, headers)

        response = await async_client.post(
            f"/admin/withdrawals/{withdrawal['id']}/process",
            json={"status": "approved"},
            headers=headers,
        )

        assert response.status_code == 403
        wallet = (await async_client.get("/wallet", headers=headers)).json()
        assert wallet["available_balance"] == 1000

    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, async_client: AsyncClient):
        response = await async_client.get("/admin/stats")

        assert response.status_code == 401


class TestAdminEndpoints:
    """Test admin API endpoints."""

    @pytest.mark.asyncio
    async def test_list_users_excludes_admins(self, async_client: AsyncClient, make_user, admin, login):
        first = await make_user()
        second = await make_user()

        response = await async_client.get("/admin/users", headers=await login(admin.email))

        assert response.status_code == 200
        users = response.json()["users"]
        assert [u["id"] for u in users] == [second.id, first.id]
        assert all("hashed_password" not in u for u in users)

    @pytest.mark.asyncio
    async def test_list_withdrawals_with_filter(self, async_client: AsyncClient, make_user, set_balance, admin, login):
        user = await make_user()
        await set_balance(user.id, "3000")
        headers = await login(user.email)
        processed = await _file_withdrawal(async_client, headers, 500)
        pending = await _file_withdrawal(async_client, headers, 700)
        admin_headers = await login(admin.email)
        await async_client.post(
            f"/admin/withdrawals/{processed['id']}/process",
            json={"status": "declined"},
            headers=admin_headers,
        )

        everything = (await async_client.get("/admin/withdrawals", headers=admin_headers)).json()["withdrawals"]
        only_pending = (await async_client.get(
            "/admin/withdrawals", params={"status": "pending"}, headers=admin_headers
        )).json()["withdrawals"]

        assert [w["id"] for w in everything] == [pending["id"], processed["id"]]
        assert [w["id"] for w in only_pending] == [pending["id"]]
        assert only_pending[0]["user_email"] == user.email
        assert only_pending[0]["user_name"] == user.full_name

    @pytest.mark.asyncio
    async def test_unknown_status_filter(self, async_client: AsyncClient, admin, login):
        response = await async_client.get(
            "/admin/withdrawals", params={"status": "lost"}, headers=await login(admin.email)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_stats(self, async_client: AsyncClient, make_user, set_balance, admin, login):
        referrer = await make_user()
        await make_user(referral_code=referrer.referral_code)
        await set_balance(referrer.id, "600", earnings="600")
        await _file_withdrawal(async_client, await login(referrer.email), 500)

        response = await async_client.get("/admin/stats", headers=await login(admin.email))

        assert response.status_code == 200
        assert response.json() == {
            "total_users": 2,
            "total_earnings": 600,
            "pending_withdrawals": 1,
            "total_referrals": 1,
        }

    @pytest.mark.asyncio
    async def test_approve(self, async_client: AsyncClient, make_user, set_balance, admin, login):
        user = await make_user()
        await set_balance(user.id, "1000")
        headers = await login(user.email)
        withdrawal = await _file_withdrawal(async_client, headers, 600)

        response = await async_client.post(
            f"/admin/withdrawals/{withdrawal['id']}/process",
            json={"status": "approved", "admin_notes": "Paid via transfer"},
            headers=await login(admin.email),
        )

        assert response.status_code == 200
        processed = response.json()["withdrawal"]
        assert processed["status"] == "approved"
        assert processed["admin_notes"] == "Paid via transfer"
        assert processed["processed_at"] is not None
        wallet = (await async_client.get("/wallet", headers=headers)).json()
        assert wallet["available_balance"] == 350
        assert wallet["total_earnings"] == 1000

    @pytest.mark.asyncio
    async def test_processed_withdrawal_conflicts(self, async_client: AsyncClient, make_user, set_balance, admin, login):
        user = await make_user()
        await set_balance(user.id, "1000")
        withdrawal = await _file_withdrawal(async_client, await login(user.email), 600)
        admin_headers = await login(admin.email)
        url = f"/admin/withdrawals/{withdrawal['id']}/process"
        await async_client.post(url, json={"status": "declined"}, headers=admin_headers)

        response = await async_client.post(url, json={"status": "approved"}, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "not_pending"

    @pytest.mark.asyncio
    async def test_unknown_withdrawal(self, async_client: AsyncClient, admin, login):
        response = await async_client.post(
            "/admin/withdrawals/9999/process",
            json={"status": "approved"},
            headers=await login(admin.email),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_pending_is_not_a_decision(self, async_client: AsyncClient, admin, login):
        response = await async_client.post(
            "/admin/withdrawals/1/process",
            json={"status": "pending"},
            headers=await login(admin.email),
        )

        assert response.status_code == 422
