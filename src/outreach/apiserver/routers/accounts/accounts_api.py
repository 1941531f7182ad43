"""Manages the third-party platform accounts that campaigns send messages from."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime, time
from typing import Annotated

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, status
from loguru import logger
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver import constants
from outreach.apiserver.dependencies import credential_service_dependency, outreach_db_session
from outreach.apiserver.routers.accounts.accounts_api_types import (
    AccountStats,
    AccountSummary,
    CreateAccountRequest,
    CreateAccountResponse,
    GetAccountResponse,
    ListAccountsResponse,
    SendMessageRequest,
    UpdateAccountRequest,
    coerce_daily_limit,
)
from outreach.apiserver.routers.accounts.message_sender import (
    MessageSender,
    load_platform_credentials,
    message_sender_dependency,
)
from outreach.apiserver.routers.auth.auth_dependencies import require_session_token, require_user_from_token
from outreach.apiserver.routers.common_responses import GENERIC_SUCCESS, STANDARD_RESPONSES
from outreach.apiserver.sqla import tables
from outreach.credentials.credentialservice import CredentialService


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


def start_of_today() -> datetime:
    return datetime.combine(datetime.now(UTC).date(), time.min, tzinfo=UTC)


async def get_account_or_raise(session: AsyncSession, user: tables.User, account_id: str) -> tables.PlatformAccount:
    """Reads the requested account from the database. Raises 404 if disallowed or not found."""
    stmt = select(tables.PlatformAccount).where(
        tables.PlatformAccount.id == account_id, tables.PlatformAccount.user_id == user.id
    )
    account = (await session.execute(stmt)).scalar_one_or_none()
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found.")
    return account


async def get_sent_counts(session: AsyncSession, account_ids: list[str]) -> dict[str, tuple[int, int]]:
    """Returns {account_id: (sent_total, sent_today)} for the given accounts."""
    if not account_ids:
        return {}
    today = start_of_today()
    stmt = (
        select(
            tables.Message.platform_account_id,
            func.count(),
            func.sum(case((tables.Message.sent_at >= today, 1), else_=0)),
        )
        .where(tables.Message.platform_account_id.in_(account_ids), tables.Message.status == "sent")
        .group_by(tables.Message.platform_account_id)
    )
    rows = await session.execute(stmt)
    return {account_id: (int(total), int(today_count or 0)) for account_id, total, today_count in rows}


def convert_account_to_summary(account: tables.PlatformAccount, sent_total: int = 0, sent_today: int = 0):
    return AccountSummary(
        id=account.id,
        username=account.username,
        is_active=account.is_active,
        last_login=account.last_login.isoformat() if account.last_login else "",
        proxy=account.proxy,
        has_password=bool(account.password),
        stats=AccountStats(
            messages_sent=sent_total,
            daily_limit=account.daily_limit or constants.DEFAULT_DAILY_LIMIT,
            daily_used=sent_today,
        ),
        created_at=account.created_at,
    )


@router.get("/accounts")
async def list_accounts(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> ListAccountsResponse:
    """Returns the authenticated user's platform accounts, newest first."""
    stmt = (
        select(tables.PlatformAccount)
        .where(tables.PlatformAccount.user_id == user.id)
        .order_by(tables.PlatformAccount.created_at.desc(), tables.PlatformAccount.id)
    )
    accounts = list(await session.scalars(stmt))
    counts = await get_sent_counts(session, [a.id for a in accounts])
    return ListAccountsResponse(
        accounts=[convert_account_to_summary(a, *counts.get(a.id, (0, 0))) for a in accounts]
    )


@router.post("/accounts")
async def create_account(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    credentials: Annotated[CredentialService, Depends(credential_service_dependency)],
    body: Annotated[CreateAccountRequest, Body(...)],
) -> CreateAccountResponse:
    """Adds a platform account. The password, when provided, is encrypted before it is stored."""
    if not body.username:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="username is required")

    account = tables.PlatformAccount(
        user_id=user.id,
        username=body.username,
        password=credentials.seal(body.password) if body.password else "",
        proxy=body.proxy,
        is_active=True,
        daily_limit=body.effective_daily_limit(),
    )
    session.add(account)
    await session.commit()
    return CreateAccountResponse(account=convert_account_to_summary(account))


@router.get("/accounts/{account_id}")
async def get_account(
    account_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
) -> GetAccountResponse:
    account = await get_account_or_raise(session, user, account_id)
    counts = await get_sent_counts(session, [account.id])
    return GetAccountResponse(account=convert_account_to_summary(account, *counts.get(account.id, (0, 0))))


@router.patch("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_account(
    account_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    credentials: Annotated[CredentialService, Depends(credential_service_dependency)],
    body: Annotated[UpdateAccountRequest, Body(...)],
):
    """Updates the fields of an account that are present in the request."""
    account = await get_account_or_raise(session, user, account_id)
    provided = body.model_fields_set

    if body.username is not None:
        if not body.username.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="username must not be empty")
        account.username = body.username.strip()
    if body.password is not None:
        account.password = credentials.seal(body.password) if body.password else ""
    if "proxy" in provided:
        account.proxy = body.proxy
    if body.is_active is not None:
        account.is_active = body.is_active
    if body.daily_limit is not None:
        daily_limit = coerce_daily_limit(body.daily_limit)
        if daily_limit is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="daily_limit must be a positive number"
            )
        account.daily_limit = daily_limit

    await session.commit()
    return GENERIC_SUCCESS


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
):
    """Removes an account along with its message history."""
    stmt = delete(tables.PlatformAccount).where(
        tables.PlatformAccount.id == account_id, tables.PlatformAccount.user_id == user.id
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found.")
    await session.commit()
    return GENERIC_SUCCESS


@router.post(
    "/accounts/{account_id}/messages",
    responses={"501": {"description": "Sending messages is not implemented."}},
)
async def send_message(
    account_id: str,
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    user: Annotated[tables.User, Depends(require_user_from_token)],
    credentials: Annotated[CredentialService, Depends(credential_service_dependency)],
    sender: Annotated[MessageSender, Depends(message_sender_dependency)],
    body: Annotated[SendMessageRequest, Body(...)],
):
    """Sends a direct message from the account to a recipient on the platform."""
    account = await get_account_or_raise(session, user, account_id)
    platform_credentials = load_platform_credentials(account, credentials)
    await sender.send(platform_credentials, body.recipient_username, body.message)
    return GENERIC_SUCCESS
