"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="refearn-test-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from decimal import Decimal
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from faker import Faker

from main import create_app
from core import security
from db.store import LedgerStore
from db.models.user import User as UserModel
from schemas.ledger_schema import UserAccount
from schemas.user_schema import User, UserCreate
from services.user_service import create_user

# Initialize Faker for test data generation
fake = Faker()

TEST_PASSWORD = "testpassword123"

# Cheap hashes keep signup-heavy tests fast
security.pwd_context.update(bcrypt__rounds=4)


@pytest.fixture
async def store(tmp_path) -> AsyncGenerator[LedgerStore, None]:
    """A fresh SQLite ledger per test."""
    ledger = LedgerStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await ledger.create_all()
    yield ledger
    await ledger.dispose()


@pytest.fixture
def app(store: LedgerStore):
    return create_app(store=store)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test store."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(store: LedgerStore):
    """Factory creating users through the real signup path."""
    async def _make(referral_code: str = None, is_admin: bool = False, email: str = None) -> UserAccount:
        payload = UserCreate(
            email=email or fake.unique.email(),
            password=TEST_PASSWORD,
            full_name=fake.name(),
            referral_code=referral_code,
        )
        return await create_user(store, payload, is_admin=is_admin)
    return _make


@pytest.fixture
def set_balance(store: LedgerStore):
    """Put a user's balances in a given state without going through referrals."""
    async def _set(user_id: int, available: str, earnings: str = None) -> UserAccount:
        available_amount = Decimal(available)
        earnings_amount = Decimal(earnings) if earnings is not None else available_amount
        async with store.session() as db:
            await db.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(total_earnings=earnings_amount, available_balance=available_amount)
            )
            await db.commit()
        return await store.get_user(user_id)
    return _set


@pytest.fixture
def as_caller():
    """Convert a stored account into the API-level caller object."""
    def _convert(account: UserAccount) -> User:
        return User(id=account.id, email=account.email, full_name=account.full_name, is_admin=account.is_admin)
    return _convert


@pytest.fixture
def login(async_client: AsyncClient):
    """Log in over HTTP and return bearer headers."""
    async def _login(email: str, password: str = TEST_PASSWORD) -> Dict[str, str]:
        response = await async_client.post("/login", data={"username": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login


@pytest.fixture
async def admin(make_user) -> UserAccount:
    return await make_user(is_admin=True)
