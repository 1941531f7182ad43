"""Manages named lists of platform usernames to contact."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, status
from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver import constants
from outreach.apiserver.dependencies import outreach_db_session
from outreach.apiserver.routers.auth.auth_dependencies import require_session_token, require_user_from_token
from outreach.apiserver.routers.common_responses import GENERIC_SUCCESS, STANDARD_RESPONSES
from outreach.apiserver.routers.leadlists.leadlists_api_types import (
    CreateLeadListRequest,
    CreateLeadListResponse,
    GetLeadListResponse,
    LeadListSummary,
    ListLeadListsResponse,
)
from outreach.apiserver.sqla import tables

DUPLICATE_NAME_DETAIL = "A list with this name already exists"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"Starting router: {__name__} (prefix={router.prefix})")
    yield


router = APIRouter(
    lifespan=lifespan,
    prefix=constants.API_PREFIX_V1,
    responses=STANDARD_RESPONSES,
    dependencies=[Depends(require_session_token)],  # All routes in this router require authentication.
)


async def get_lead_list_or_raise(session: AsyncSession, user: tables.User, list_id: str) -> tables.LeadList:
    """Reads the requested lead list from the database. Raises 404 if disallowed or not found."""
    stmt = select(tables.LeadList).where(tables.LeadList.id == list_id, tables.LeadList.user_id == user.id)
    lead_list = (await session.execute(stmt)).scalar_one_or_none()
    if lead_list is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List not found")
    return lead_list


def convert_lead_list_to_summary(lead_list: tables.LeadList):
    return LeadListSummary(
        id=lead_list.id,
        name=lead_list.name,
        usernames=lead_list.usernames or [],
        created_at=lead_list.created_at,
        updated_at=lead_list.updated_at,
    )


@router.get("/lead-lists")
async def list_lead_lists(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> ListLeadListsResponse:
    """Returns the authenticated user's lead lists, newest first."""
    stmt = (
        select(tables.LeadList)
        .where(tables.LeadList.user_id == user.id)
        .order_by(tables.LeadList.created_at.desc(), tables.LeadList.id)
    )
    lead_lists = await session.scalars(stmt)
    return ListLeadListsResponse(lists=[convert_lead_list_to_summary(ll) for ll in lead_lists])


@router.post("/lead-lists", responses={"409": {"description": "A list with this name already exists."}})
async def create_lead_list(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[CreateLeadListRequest, Body(...)],
) -> CreateLeadListResponse:
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")

    stmt = select(tables.LeadList.id).where(tables.LeadList.user_id == user.id, tables.LeadList.name == name)
    if (await session.execute(stmt)).scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_NAME_DETAIL)

    lead_list = tables.LeadList(user_id=user.id, name=name, usernames=body.usernames)
    session.add(lead_list)
    try:
        await session.commit()
    except IntegrityError as exc:
        # Another request created a list with the same name after the check above.
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_NAME_DETAIL) from exc
    return CreateLeadListResponse(list=convert_lead_list_to_summary(lead_list))


@router.get("/lead-lists/{list_id}")
async def get_lead_list(
    list_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> GetLeadListResponse:
    lead_list = await get_lead_list_or_raise(session, user, list_id)
    return GetLeadListResponse(list=convert_lead_list_to_summary(lead_list))


@router.delete("/lead-lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead_list(
    list_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
):
    stmt = delete(tables.LeadList).where(tables.LeadList.id == list_id, tables.LeadList.user_id == user.id)
    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List not found")
    await session.commit()
    return GENERIC_SUCCESS
