import os
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.storage import get_logos_storage, get_products_storage
from libs.db.base import Base
from libs.db.session import get_async_db

# Register every table on Base.metadata
from services.catalog_service import models as _catalog_models  # noqa: F401
from services.orders_service import models as _order_models  # noqa: F401
from services.stores_service import models as _store_models  # noqa: F401
from tests.factories import StoreFactory
from tests.stubs import FakeStorage


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Fresh schema per test. SQLite file under tmp_path by default;
    set TEST_DATABASE_URL to run against Postgres.
    """
    db_url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path}/test.db"
    engine = create_async_engine(db_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session shared by the test body and the app under test."""
    session_factory = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def seller() -> AuthUser:
    return AuthUser(
        user_id=str(uuid.uuid4()),
        email="seller@example.com",
        user_metadata={"first_name": "Ana"},
    )


@pytest_asyncio.fixture
async def store(db_session, seller):
    """The authenticated seller's store."""
    store = StoreFactory.create(seller_id=seller.user_id)
    db_session.add(store)
    await db_session.commit()
    return store


@pytest.fixture
def products_storage() -> FakeStorage:
    return FakeStorage("products")


@pytest.fixture
def logos_storage() -> FakeStorage:
    return FakeStorage("store-logos")


def _client(app, db_session, user=None, overrides=None):
    app.dependency_overrides[get_async_db] = lambda: db_session
    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
    for dependency, override in (overrides or {}).items():
        app.dependency_overrides[dependency] = override
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def orders_client(db_session, seller) -> AsyncGenerator[AsyncClient, None]:
    from services.orders_service.app.main import app

    async with _client(app, db_session, seller) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def payments_client(db_session, seller) -> AsyncGenerator[AsyncClient, None]:
    from services.payments_service.app.main import app

    async with _client(app, db_session, seller) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def webhook_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Payments app with no user auth, as the gateway sees it."""
    from services.payments_service.app.main import app

    async with _client(app, db_session) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def catalog_client(
    db_session, seller, products_storage
) -> AsyncGenerator[AsyncClient, None]:
    from services.catalog_service.app.main import app

    overrides = {get_products_storage: lambda: products_storage}
    async with _client(app, db_session, seller, overrides) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def stores_client(
    db_session, seller, logos_storage
) -> AsyncGenerator[AsyncClient, None]:
    from services.stores_service.app.main import app

    overrides = {get_logos_storage: lambda: logos_storage}
    async with _client(app, db_session, seller, overrides) as ac:
        yield ac
    app.dependency_overrides.clear()
