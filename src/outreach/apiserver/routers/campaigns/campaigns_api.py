"""Manages outreach campaigns and the status of the messages they send."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, status
from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver import constants
from outreach.apiserver.dependencies import outreach_db_session
from outreach.apiserver.routers.auth.auth_dependencies import require_session_token, require_user_from_token
from outreach.apiserver.routers.campaigns.campaigns_api_types import (
    CampaignStats,
    CampaignSummary,
    CreateCampaignRequest,
    CreateCampaignResponse,
    GetCampaignResponse,
    GetMessageResponse,
    ListCampaignsResponse,
    ListMessagesResponse,
    MessageSummary,
    UpdateCampaignRequest,
    UpdateMessageRequest,
)
from outreach.apiserver.routers.common_responses import GENERIC_SUCCESS, STANDARD_RESPONSES
from outreach.apiserver.sqla import tables


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


async def get_campaign_or_raise(session: AsyncSession, user: tables.User, campaign_id: str) -> tables.Campaign:
    """Reads the requested campaign from the database. Raises 404 if disallowed or not found."""
    stmt = select(tables.Campaign).where(tables.Campaign.id == campaign_id, tables.Campaign.user_id == user.id)
    campaign = (await session.execute(stmt)).scalar_one_or_none()
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found.")
    return campaign


async def get_message_or_raise(session: AsyncSession, user: tables.User, message_id: str) -> tables.Message:
    """Reads the requested message, which must have been sent from one of the user's accounts."""
    stmt = (
        select(tables.Message)
        .join(tables.PlatformAccount)
        .where(tables.Message.id == message_id, tables.PlatformAccount.user_id == user.id)
    )
    message = (await session.execute(stmt)).scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found.")
    return message


async def check_template_belongs_to_user(session: AsyncSession, user: tables.User, template_id: str):
    stmt = select(tables.MessageTemplate.id).where(
        tables.MessageTemplate.id == template_id, tables.MessageTemplate.user_id == user.id
    )
    if (await session.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="message_template_id is not a known template"
        )


def convert_campaign_to_summary(campaign: tables.Campaign):
    return CampaignSummary(
        id=campaign.id,
        name=campaign.name,
        description=campaign.description or "",
        status=campaign.status,
        message_template_id=campaign.message_template_id,
        target_criteria=campaign.target_criteria or {},
        schedule=campaign.schedule or {},
        settings=campaign.settings or {},
        stats=CampaignStats(),
        created_at=campaign.created_at,
        updated_at=campaign.updated_at,
    )


def convert_message_to_summary(message: tables.Message):
    return MessageSummary(
        id=message.id,
        campaign_id=message.campaign_id,
        platform_account_id=message.platform_account_id,
        recipient_username=message.recipient_username,
        content=message.content,
        status=message.status,
        sent_at=message.sent_at,
        created_at=message.created_at,
        error=message.error,
    )


@router.get("/campaigns")
async def list_campaigns(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> ListCampaignsResponse:
    """Returns the authenticated user's campaigns, newest first."""
    stmt = (
        select(tables.Campaign)
        .where(tables.Campaign.user_id == user.id)
        .order_by(tables.Campaign.created_at.desc(), tables.Campaign.id)
    )
    campaigns = await session.scalars(stmt)
    return ListCampaignsResponse(campaigns=[convert_campaign_to_summary(c) for c in campaigns])


@router.post("/campaigns")
async def create_campaign(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[CreateCampaignRequest, Body(...)],
) -> CreateCampaignResponse:
    if not body.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")
    if body.message_template_id:
        await check_template_belongs_to_user(session, user, body.message_template_id)

    campaign = tables.Campaign(
        user_id=user.id,
        name=body.name.strip(),
        description=body.description,
        status=body.status,
        message_template_id=body.message_template_id or None,
        target_criteria=body.target_criteria,
        schedule=body.schedule,
        settings=body.settings,
    )
    session.add(campaign)
    await session.commit()
    logger.info(f"Created campaign {campaign.id} for user {user.id}")
    return CreateCampaignResponse(campaign=convert_campaign_to_summary(campaign))


@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> GetCampaignResponse:
    campaign = await get_campaign_or_raise(session, user, campaign_id)
    return GetCampaignResponse(campaign=convert_campaign_to_summary(campaign))


@router.patch("/campaigns/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_campaign(
    campaign_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[UpdateCampaignRequest, Body(...)],
):
    campaign = await get_campaign_or_raise(session, user, campaign_id)
    if body.name is not None:
        if not body.name.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name must not be empty")
        campaign.name = body.name.strip()
    if body.description is not None:
        campaign.description = body.description
    if body.status is not None:
        campaign.status = body.status
    # An explicit null detaches the template; an absent field leaves it alone.
    if "message_template_id" in body.model_fields_set:
        if body.message_template_id:
            await check_template_belongs_to_user(session, user, body.message_template_id)
        campaign.message_template_id = body.message_template_id or None
    for field in ("target_criteria", "schedule", "settings"):
        if field in body.model_fields_set:
            setattr(campaign, field, getattr(body, field))
    await session.commit()
    return GENERIC_SUCCESS


@router.delete("/campaigns/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(
    campaign_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
):
    stmt = delete(tables.Campaign).where(tables.Campaign.id == campaign_id, tables.Campaign.user_id == user.id)
    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found.")
    await session.commit()
    return GENERIC_SUCCESS


@router.get("/campaigns/{campaign_id}/messages")
async def list_campaign_messages(
    campaign_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    platform_account_id: Annotated[
        str | None, Query(description="Only return messages sent from this account.")
    ] = None,
) -> ListMessagesResponse:
    """Returns the most recent messages sent as part of a campaign, newest first."""
    campaign = await get_campaign_or_raise(session, user, campaign_id)
    stmt = select(tables.Message).where(tables.Message.campaign_id == campaign.id)
    if platform_account_id:
        stmt = stmt.where(tables.Message.platform_account_id == platform_account_id)
    stmt = stmt.order_by(tables.Message.created_at.desc(), tables.Message.id).limit(constants.CAMPAIGN_MESSAGES_LIMIT)
    messages = await session.scalars(stmt)
    return ListMessagesResponse(messages=[convert_message_to_summary(m) for m in messages])


@router.patch("/messages/{message_id}")
async def update_message(
    message_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[UpdateMessageRequest, Body(...)],
) -> GetMessageResponse:
    """Records the delivery status of a message reported by a sending worker."""
    if not body.status.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="status is required")
    message = await get_message_or_raise(session, user, message_id)
    message.status = body.status.strip()
    if message.status == "sent":
        message.sent_at = datetime.now(UTC)
    if body.error is not None:
        message.error = body.error
    await session.commit()
    return GetMessageResponse(message=convert_message_to_summary(message))
