from fastapi import FastAPI

from outreach.apiserver.routers import healthchecks_api
from outreach.apiserver.routers.accounts import accounts_api
from outreach.apiserver.routers.campaigns import campaigns_api
from outreach.apiserver.routers.leadlists import leadlists_api
from outreach.apiserver.routers.templates import templates_api


def register(app: FastAPI):
    app.include_router(healthchecks_api.router, tags=["Health Checks"], include_in_schema=False)
    app.include_router(accounts_api.router, tags=["Accounts"])
    app.include_router(templates_api.router, tags=["Templates"])
    app.include_router(campaigns_api.router, tags=["Campaigns"])
    app.include_router(leadlists_api.router, tags=["Lead Lists"])
