import os
import warnings

import pytest
from sqlalchemy import create_engine

# Set environment variables BEFORE importing app modules
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_DSN"] = "sqlite+aiosqlite:///file:wishqr_tests?mode=memory&cache=shared&uri=true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-32-chars-minimum!!"
os.environ["ENVIRONMENT"] = "test"

warnings.filterwarnings("ignore", category=DeprecationWarning)

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from wishqr.core.rate_limit import limiter
from wishqr.core.security import create_id_token
from wishqr.db.session import Base, get_db
from wishqr.main import app


def pytest_configure(config):
    warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture
def anyio_backend():
    # The app's async stack (aiosqlite / SQLAlchemy asyncio) only runs on asyncio.
    return "asyncio"


@pytest.fixture(autouse=True)
def session_factory(tmp_path):
    """Fresh SQLite database per test, wired into the app's get_db dependency."""
    db_path = tmp_path / "test.db"
    from wishqr.models import models as models_module
    _ = models_module
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async_session = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    yield async_session
    app.dependency_overrides.clear()
    engine.sync_engine.dispose()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth():
    """Build Authorization headers for an identity provider subject."""

    def _headers(uid: str, **claims) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_id_token(uid, claims)}"}

    return _headers
