import asyncio
import datetime
import secrets
from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.apiserver import flags
from outreach.apiserver.dependencies import outreach_db_session
from outreach.apiserver.routers.auth.principal import Principal
from outreach.apiserver.sqla import tables

# Set TESTING_TOKENS_ENABLED to allow statically defined bearer tokens to skip the JWT validation.
AIRPLANE_TOKEN = "airplane-mode-token"
PRIMARY_EMAIL = "testing-primary@example.com"
PRIMARY_TOKEN_FOR_TESTING = secrets.token_urlsafe(32)
SECONDARY_EMAIL = "testing-secondary@example.com"
SECONDARY_TOKEN_FOR_TESTING = secrets.token_urlsafe(32)
TESTING_TOKENS_ENABLED = False
TESTING_TOKENS = {
    AIRPLANE_TOKEN: Principal(email="testing@example.com", iss="airplane", sub="airplane"),
    PRIMARY_TOKEN_FOR_TESTING: Principal(email=PRIMARY_EMAIL, iss="testing", sub="user_primary"),
    SECONDARY_TOKEN_FOR_TESTING: Principal(email=SECONDARY_EMAIL, iss="testing", sub="user_secondary"),
}


class IdentityProviderError(Exception):
    pass


class ServerAppearsOfflineError(Exception):
    pass


@dataclass
class JwksConfig:
    last_refreshed: datetime.datetime
    jwks: dict

    def should_refresh(self):
        return self.last_refreshed < datetime.datetime.now() - datetime.timedelta(hours=1)


# _jwks_config and _jwks_config_stampede_lock are managed by get_jwks_configuration().
_jwks_config: JwksConfig | None = None
_jwks_config_stampede_lock = asyncio.Lock()


async def _fetch_object_200(client: httpx.AsyncClient, url: str):
    """Fetches a URL using the given httpx client, parses the response as a JSON dictionary.

    Raises IdentityProviderError when the response is not a 200 status or when the response is not a dict.
    """
    response = await client.get(url)
    if response.status_code != 200:
        raise IdentityProviderError(f"Fetching {url} failed with an unexpected status code: {response.status_code}")
    parsed = response.json()
    if not isinstance(parsed, dict):
        raise IdentityProviderError(f"{url} returned a non-dictionary response")
    return parsed


async def get_jwks_configuration() -> JwksConfig:
    """Fetch and cache the identity provider's signing keys."""
    global _jwks_config
    # When config is fresh, we can use it immediately.
    if _jwks_config and not _jwks_config.should_refresh():
        return _jwks_config

    # Send only one outbound request even if there are many waiting.
    async with _jwks_config_stampede_lock:
        if _jwks_config and not _jwks_config.should_refresh():
            return _jwks_config

        if not flags.AUTH_JWKS_URL:
            raise IdentityProviderError(f"{flags.ENV_AUTH_JWKS_URL} is not set")

        logger.info("Fetching identity provider JWKS")
        try:
            transport = httpx.AsyncHTTPTransport(retries=2)
            async with httpx.AsyncClient(transport=transport, timeout=15.0) as client:
                jwks_response = await _fetch_object_200(client, flags.AUTH_JWKS_URL)
                if not jwks_response.get("keys"):
                    raise IdentityProviderError("JWKS response does not contain keys in expected format")
                _jwks_config = JwksConfig(last_refreshed=datetime.datetime.now(), jwks=jwks_response)
        except httpx.ConnectError as exc:
            raise ServerAppearsOfflineError("We appear to be offline.") from exc
        else:
            return _jwks_config


def _unauthorized(detail: str):
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def require_session_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Security(HTTPBearer())],
    jwks_config: Annotated[JwksConfig, Depends(get_jwks_configuration)],
) -> Principal:
    """Dependency for validating that the Authorization: header is a session token issued by the identity provider.

    This method may raise a 401 or 403.
    """
    token = credentials.credentials
    if TESTING_TOKENS_ENABLED and token in TESTING_TOKENS:
        return TESTING_TOKENS[token]
    if flags.AIRPLANE_MODE and token == AIRPLANE_TOKEN:
        return TESTING_TOKENS[AIRPLANE_TOKEN]
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise _unauthorized(f"Invalid authentication credentials: {e}") from e
    key = next((jwk for jwk in jwks_config.jwks["keys"] if jwk.get("kid") == header.get("kid")), None)
    if not key:
        raise _unauthorized("Unable to find appropriate key")
    try:
        decoded = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=flags.AUTH_ISSUER or None,
            options={
                "verify_aud": False,  # Session tokens are not minted for a specific audience.
                "require_iss": bool(flags.AUTH_ISSUER),
                "require_iat": True,
                "require_exp": True,
                "require_sub": True,
            },
        )
    except JWTError as e:
        raise _unauthorized(f"Invalid authentication credentials: {e}") from e
    return Principal(email=decoded.get("email", ""), iss=decoded.get("iss", ""), sub=decoded["sub"])


async def require_user_from_token(
    session: Annotated[AsyncSession, Depends(outreach_db_session)],
    token_info: Annotated[Principal, Depends(require_session_token)],
) -> tables.User:
    """Dependency for fetching the User record matching the authenticated principal.

    Users are created on their first authenticated request. The stored email is refreshed when the identity provider
    reports a new one.
    """
    stmt = select(tables.User).where(tables.User.external_id == token_info.sub)
    user = (await session.execute(stmt)).scalar_one_or_none()
    if user is None:
        user = tables.User(external_id=token_info.sub, email=token_info.email)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # A concurrent request for the same subject created the user first.
            await session.rollback()
            user = (await session.execute(stmt)).scalar_one()
        else:
            logger.info(f"Created user {user.id} for subject {token_info.sub}")
            return user
    if token_info.email and user.email != token_info.email:
        user.email = token_info.email
        await session.commit()
    return user


def enable_testing_tokens():
    """Configures the authentication system to enable tokens used in unit tests."""
    global TESTING_TOKENS_ENABLED
    TESTING_TOKENS_ENABLED = True


def disable(app):
    """Disables interaction with internet-dependent authentication resources."""

    def noop():
        pass

    # Disable fetching of JWKS data.
    app.dependency_overrides[get_jwks_configuration] = noop


def setup(app):
    """Configures FastAPI dependencies for session token verification."""

    # If we are not in airplane mode, there is no setup to do.
    if not flags.AIRPLANE_MODE:
        return

    logger.warning("AIRPLANE_MODE is set.")

    disable(app)
