import os

# Select config.test.TestSettings before anything imports config
os.environ.setdefault("MODE", "test")

import pytest
from httpx import AsyncClient, ASGITransport

from main import app as fastapi_app
import db as project_db
import db_models  # noqa: F401  ensure models are imported
from db_base import Base
from config import settings
from core.container import build_services, close_services
from fakes import FakeNotifier


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def sql_engine(tmp_path):
    # A throwaway SQLite file per test; tables come straight from the models
    engine = project_db.make_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return project_db.make_session_factory(sql_engine)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def services(session_factory, notifier):
    services = build_services(settings, session_factory, telegram=notifier)
    yield services
    await close_services(services)


@pytest.fixture
async def async_client(session_factory, services):
    # Override the get_session dependency to use the per-test database
    async def override_get_session():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[project_db.get_session] = override_get_session
    # ASGITransport does not run the lifespan, so install the services directly
    fastapi_app.state.services = services

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://testserver") as ac:
        yield ac

    # Clean up
    fastapi_app.dependency_overrides.clear()
    fastapi_app.state.services = None
