"""Manages the message templates used by campaigns."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, status
from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver import constants
from outreach.apiserver.dependencies import outreach_db_session
from outreach.apiserver.routers.auth.auth_dependencies import require_session_token, require_user_from_token
from outreach.apiserver.routers.common_responses import GENERIC_SUCCESS, STANDARD_RESPONSES
from outreach.apiserver.routers.templates.templates_api_types import (
    CreateTemplateRequest,
    CreateTemplateResponse,
    GetTemplateResponse,
    ListTemplatesResponse,
    TemplateSummary,
    TemplateVariable,
    UpdateTemplateRequest,
)
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


async def get_template_or_raise(session: AsyncSession, user: tables.User, template_id: str) -> tables.MessageTemplate:
    """Reads the requested template from the database. Raises 404 if disallowed or not found."""
    stmt = select(tables.MessageTemplate).where(
        tables.MessageTemplate.id == template_id, tables.MessageTemplate.user_id == user.id
    )
    template = (await session.execute(stmt)).scalar_one_or_none()
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found.")
    return template


def convert_template_to_summary(template: tables.MessageTemplate):
    return TemplateSummary(
        id=template.id,
        name=template.name,
        content=template.content,
        variables=[TemplateVariable.model_validate(v) for v in template.variables or []],
        is_active=template.is_active,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


@router.get("/templates")
async def list_templates(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> ListTemplatesResponse:
    """Returns the authenticated user's templates, newest first."""
    stmt = (
        select(tables.MessageTemplate)
        .where(tables.MessageTemplate.user_id == user.id)
        .order_by(tables.MessageTemplate.created_at.desc(), tables.MessageTemplate.id)
    )
    templates = await session.scalars(stmt)
    return ListTemplatesResponse(templates=[convert_template_to_summary(t) for t in templates])


@router.post("/templates")
async def create_template(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[CreateTemplateRequest, Body(...)],
) -> CreateTemplateResponse:
    if not body.name.strip() or not body.content.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name and content are required")

    template = tables.MessageTemplate(
        user_id=user.id,
        name=body.name.strip(),
        content=body.content,
        variables=[v.model_dump() for v in body.variables],
        is_active=body.is_active,
    )
    session.add(template)
    await session.commit()
    return CreateTemplateResponse(template=convert_template_to_summary(template))


@router.get("/templates/{template_id}")
async def get_template(
    template_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> GetTemplateResponse:
    template = await get_template_or_raise(session, user, template_id)
    return GetTemplateResponse(template=convert_template_to_summary(template))


@router.patch("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_template(
    template_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    body: Annotated[UpdateTemplateRequest, Body(...)],
):
    template = await get_template_or_raise(session, user, template_id)
    if body.name is not None:
        if not body.name.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name must not be empty")
        template.name = body.name.strip()
    if body.content is not None:
        if not body.content.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="content must not be empty")
        template.content = body.content
    if body.variables is not None:
        template.variables = [v.model_dump() for v in body.variables]
    if body.is_active is not None:
        template.is_active = body.is_active
    await session.commit()
    return GENERIC_SUCCESS


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
):
    stmt = delete(tables.MessageTemplate).where(
        tables.MessageTemplate.id == template_id, tables.MessageTemplate.user_id == user.id
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found.")
    await session.commit()
    return GENERIC_SUCCESS
