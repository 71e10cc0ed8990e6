"""Shared fixtures: a fresh SQLite database per test and an API client."""

import os

os.environ["DB_URL"] = "sqlite+aiosqlite://"
os.environ["DB_CREATE_SCHEMA"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["CACHE_ENABLED"] = "true"

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from components.core.cache import read_cache
from components.core.database import DatabaseManager
from components.core.init_db import get_db
from components.core.security import create_user_token
from components.loan.repository import LoanRepository
from components.user.models import UserRole
from components.user.repository import UserRepository
from components.user.schemas import UserCreate
from restapi.router import create_app


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    # A file database so that concurrent sessions use separate connections.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )
    manager = DatabaseManager(engine)
    await manager.create_all()
    yield manager
    await manager.dispose()


@pytest_asyncio.fixture
async def session(db_manager):
    async with db_manager.get_db() as db:
        yield db


@pytest_asyncio.fixture
async def admin(session):
    return await UserRepository(session).create(UserCreate(
        email="admin@example.com",
        first_name="Ada",
        last_name="Admin",
        role=UserRole.ADMIN,
    ))


@pytest_asyncio.fixture
async def user(session):
    return await UserRepository(session).create(UserCreate(
        email="client@example.com",
        first_name="Carl",
        last_name="Client",
    ))


@pytest_asyncio.fixture
async def other_user(session):
    return await UserRepository(session).create(UserCreate(
        email="other@example.com",
        first_name="Olga",
        last_name="Other",
    ))


@pytest_asyncio.fixture
async def loan(session, user):
    return await LoanRepository(session).create_loan(user.id, Decimal("10000"), Decimal("0.01"))


@pytest_asyncio.fixture
async def client(db_manager):
    app = create_app()

    async def override_get_db():
        async with db_manager.get_db() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    read_cache.clear()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as api:
        yield api
    read_cache.clear()


@pytest.fixture
def auth_headers():
    def build(account) -> dict:
        return {"Authorization": f"Bearer {create_user_token(account.id, account.role)}"}
    return build
