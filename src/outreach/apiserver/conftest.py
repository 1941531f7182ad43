"""conftest configures FastAPI dependency injection for testing and also does some setup before tests in
this module are run."""

from functools import partial

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Session
from starlette.testclient import TestClient

from outreach.apiserver import flags
from outreach.apiserver.dependencies import credential_service_dependency
from outreach.apiserver.main import app
from outreach.apiserver.routers.auth import auth_dependencies
from outreach.apiserver.routers.auth.auth_dependencies import (
    PRIMARY_TOKEN_FOR_TESTING,
    SECONDARY_TOKEN_FOR_TESTING,
)
from outreach.apiserver.sqla import tables
from outreach.credentials.credentialservice import CredentialService

# The credentials key used by the API server under test.
TESTING_CREDENTIALS_KEY = "testing-credentials-key"


def get_credential_service_for_test():
    return CredentialService(TESTING_CREDENTIALS_KEY)


@pytest.fixture(scope="session", autouse=True)
def fixture_override_app_dependencies():
    """Configures FastAPI dependencies for testing.

    This uses FastAPI's dependency override mechanism: https://fastapi.tiangolo.com/advanced/testing-dependencies/#use-the-appdependency_overrides-attribute
    """
    app.dependency_overrides[credential_service_dependency] = get_credential_service_for_test

    auth_dependencies.disable(app)
    auth_dependencies.enable_testing_tokens()


@pytest.fixture(name="database_path")
def fixture_database_path(tmp_path, monkeypatch):
    """Points the API server at a fresh SQLite database with all tables created."""
    path = tmp_path / "outreach.db"
    engine = create_engine(f"sqlite:///{path}")
    tables.Base.metadata.create_all(engine)
    engine.dispose()
    monkeypatch.setattr(flags, "DATABASE_URL", f"sqlite+aiosqlite:///{path}")
    return path


@pytest.fixture(name="db_session")
def fixture_db_session(database_path):
    """Yields a synchronous SQLAlchemy session on the API server's database for direct inspection.

    Where possible, prefer using the API methods to test functionality rather than touching the database
    directly.
    """
    engine = create_engine(f"sqlite:///{database_path}")
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture(name="outreach_session")
async def fixture_outreach_session(database_path):
    """Yields an AsyncSession on the API server's database, for calling dependencies directly."""
    engine = create_async_engine(flags.DATABASE_URL)
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
    await engine.dispose()


@pytest.fixture(name="client")
def fixture_client(database_path):
    """Returns a FastAPI TestClient.

    TestClient manages the lifecycle of the app and will invoke the FastAPI app and router @lifespan methods.
    """
    with TestClient(app) as client:
        yield client


def _authenticated(client, method: str, token: str):
    return partial(getattr(client, method), headers={"Authorization": f"Bearer {token}"})


@pytest.fixture(name="pget")
def fixture_pget(client):
    return _authenticated(client, "get", PRIMARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="ppost")
def fixture_ppost(client):
    return _authenticated(client, "post", PRIMARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="ppatch")
def fixture_ppatch(client):
    return _authenticated(client, "patch", PRIMARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="pdelete")
def fixture_pdelete(client):
    return _authenticated(client, "delete", PRIMARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="uget")
def fixture_uget(client):
    return _authenticated(client, "get", SECONDARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="upost")
def fixture_upost(client):
    return _authenticated(client, "post", SECONDARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="upatch")
def fixture_upatch(client):
    return _authenticated(client, "patch", SECONDARY_TOKEN_FOR_TESTING)


@pytest.fixture(name="udelete")
def fixture_udelete(client):
    return _authenticated(client, "delete", SECONDARY_TOKEN_FOR_TESTING)
