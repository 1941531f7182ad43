from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from outreach.apiserver import (
    customlogging,
    database,
    exceptionhandlers,
    middleware,
    routes,
)
from outreach.apiserver.routers.auth import auth_dependencies
from outreach.credentials import credentialservice
from outreach.ops import sentry

sentry.setup()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"Starting server: {__name__}")
    async with database.setup():
        yield


app = FastAPI(lifespan=lifespan, title="outreach")
exceptionhandlers.setup(app)
middleware.setup(app)
customlogging.setup()
credentialservice.setup()
routes.register(app)
auth_dependencies.setup(app)
