"""Handles SQLAlchemy connections to the application database.

Production deployments use PostgreSQL through psycopg. SQLite (through aiosqlite) is accepted for local development
and tests.
"""

import contextlib
import dataclasses

from loguru import logger
from sqlalchemy import event, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from outreach.apiserver import flags

# SQLAlchemy's logger will append this to the name of its loggers used for the application database; e.g.
# sqlalchemy.engine.Engine.outreach_app.
SA_LOGGER_NAME_FOR_APP = "outreach_app"

POSTGRES_DIALECT = "postgresql+psycopg"
SQLITE_DIALECT = "sqlite+aiosqlite"

# Seconds to wait for a PostgreSQL connection before failing the request with a 504.
POSTGRES_CONNECT_TIMEOUT = 10


class DatabaseSetupRequiredError(Exception):
    pass


def generic_url_to_sa_url(database_url: str) -> str:
    """Rewrites driverless postgres:// and sqlite:// URLs to the async dialects we use.

    URLs that already name a driver are returned unchanged.
    """
    scheme, sep, rest = database_url.partition("://")
    if not sep:
        return database_url
    if scheme in {"postgres", "postgresql"}:
        return f"{POSTGRES_DIALECT}://{rest}"
    if scheme == "sqlite":
        return f"{SQLITE_DIALECT}://{rest}"
    return database_url


def get_server_database_url() -> str:
    """Gets a SQLAlchemy-compatible URL string from the environment."""
    if not flags.DATABASE_URL:
        raise ValueError("DATABASE_URL is not set")
    database_url = generic_url_to_sa_url(flags.DATABASE_URL)
    logger.info(f"Using application database: {make_url(database_url).render_as_string(hide_password=True)}")
    return database_url


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are enabled on each connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app_engine(database_url: str) -> AsyncEngine:
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args["connect_timeout"] = POSTGRES_CONNECT_TIMEOUT

    engine = create_async_engine(
        url,
        connect_args=connect_args,
        echo=flags.LOG_SQL_APP_DB,
        execution_options={"logging_token": "app_async"},
        logging_name=SA_LOGGER_NAME_FOR_APP,
        pool_pre_ping=url.get_backend_name() == "postgresql",
    )
    if url.get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@dataclasses.dataclass(slots=True, frozen=True)
class DatabaseState:
    async_engine: AsyncEngine
    sessionmaker: async_sessionmaker


_GLOBAL_STATE: DatabaseState | None = None


def async_session():
    """Returns a new AsyncSession for the application database."""
    if _GLOBAL_STATE is None:
        raise DatabaseSetupRequiredError()
    return _GLOBAL_STATE.sessionmaker()


@contextlib.asynccontextmanager
async def setup():
    """Opens the application database for the lifetime of the server."""
    global _GLOBAL_STATE

    async_engine = create_app_engine(get_server_database_url())
    # Handlers read attributes of committed rows when building responses, so rows must not expire on commit.
    _GLOBAL_STATE = DatabaseState(async_engine, async_sessionmaker(bind=async_engine, expire_on_commit=False))
    try:
        yield
    finally:
        _GLOBAL_STATE = None
        await async_engine.dispose()
