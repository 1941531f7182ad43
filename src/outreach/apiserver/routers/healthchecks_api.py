from contextlib import asynccontextmanager
from typing import Annotated

import sqlalchemy
from fastapi import APIRouter, Depends, FastAPI
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver.dependencies import credential_service_dependency, outreach_db_session
from outreach.credentials.credentialservice import CredentialService


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"Starting router: {__name__} (prefix={router.prefix})")
    yield


router = APIRouter(lifespan=lifespan, prefix="/_healthchecks", dependencies=[])


@router.get("/db")
async def healthcheck_db(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
):
    """Endpoint to confirm that we can make a connection to the database and issue a query."""
    now = (await session.execute(sqlalchemy.select(sqlalchemy.sql.func.now()))).scalar_one_or_none()
    return {"status": "ok", "db_time": now}


@router.get("/credentials")
async def healthcheck_credentials(
    credentials: Annotated[CredentialService, Depends(credential_service_dependency)],
):
    """Reports whether account passwords are encrypted at rest."""
    return {"status": "ok", "encryption_enabled": credentials.enabled}
