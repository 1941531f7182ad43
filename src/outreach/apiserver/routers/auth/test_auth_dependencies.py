import datetime
import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwk, jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from outreach.apiserver import flags
from outreach.apiserver.routers.auth import auth_dependencies
from outreach.apiserver.routers.auth.auth_dependencies import (
    AIRPLANE_TOKEN,
    PRIMARY_TOKEN_FOR_TESTING,
    TESTING_TOKENS,
    IdentityProviderError,
    JwksConfig,
    get_jwks_configuration,
    require_session_token,
    require_user_from_token,
)
from outreach.apiserver.routers.auth.principal import Principal
from outreach.apiserver.sqla import tables

ISSUER = "https://idp.example.com/"
KID = "testing-kid"


@pytest.fixture(name="signing_key", scope="module")
def fixture_signing_key():
    """Returns (private key PEM, JwksConfig advertising the public half)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
        .decode()
    )
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = KID
    config = JwksConfig(last_refreshed=datetime.datetime.now(), jwks={"keys": [public_jwk]})
    return private_pem, config


def make_token(private_pem: str, kid: str = KID, **overrides) -> str:
    now = int(time.time())
    claims = {"sub": "user_1", "email": "user1@example.com", "iss": ISSUER, "iat": now, "exp": now + 600}
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.fixture(autouse=True)
def fixture_issuer(monkeypatch):
    monkeypatch.setattr(flags, "AUTH_ISSUER", ISSUER)


async def test_require_session_token(signing_key):
    private_pem, config = signing_key
    principal = await require_session_token(bearer(make_token(private_pem)), config)
    assert principal == Principal(email="user1@example.com", iss=ISSUER, sub="user_1")


async def test_require_session_token_without_email(signing_key):
    private_pem, config = signing_key
    principal = await require_session_token(bearer(make_token(private_pem, email=None)), config)
    assert principal.email == ""


@pytest.mark.parametrize(
    "overrides",
    [
        {"exp": int(time.time()) - 60},
        {"iss": "https://elsewhere.example.com/"},
        {"sub": None},
        {"iat": None},
        {"exp": None},
    ],
)
async def test_require_session_token_rejects_claims(signing_key, overrides):
    private_pem, config = signing_key
    with pytest.raises(HTTPException, match="Invalid authentication credentials") as exc:
        await require_session_token(bearer(make_token(private_pem, **overrides)), config)
    assert exc.value.status_code == 401


async def test_require_session_token_unknown_kid(signing_key):
    private_pem, config = signing_key
    with pytest.raises(HTTPException, match="Unable to find appropriate key") as exc:
        await require_session_token(bearer(make_token(private_pem, kid="rotated-away")), config)
    assert exc.value.status_code == 401


async def test_require_session_token_wrong_signer(signing_key):
    _, config = signing_key
    other_pem = (
        rsa.generate_private_key(public_exponent=65537, key_size=2048)
        .private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption())
        .decode()
    )
    with pytest.raises(HTTPException) as exc:
        await require_session_token(bearer(make_token(other_pem)), config)
    assert exc.value.status_code == 401


@pytest.mark.parametrize("variant", ["x", ".", " ", "==", ";", "\n"])
async def test_require_session_token_garbage(signing_key, variant):
    private_pem, config = signing_key
    with pytest.raises(HTTPException) as exc:
        await require_session_token(bearer(variant + make_token(private_pem)), config)
    assert exc.value.status_code == 401


async def test_require_session_token_testing_tokens():
    assert await require_session_token(bearer(PRIMARY_TOKEN_FOR_TESTING), None) == TESTING_TOKENS[
        PRIMARY_TOKEN_FOR_TESTING
    ]


async def test_require_session_token_airplane_token(monkeypatch):
    monkeypatch.setattr(auth_dependencies, "TESTING_TOKENS_ENABLED", False)
    monkeypatch.setattr(flags, "AIRPLANE_MODE", True)
    principal = await require_session_token(bearer(AIRPLANE_TOKEN), None)
    assert principal.sub == "airplane"


async def test_get_jwks_configuration_requires_url(monkeypatch):
    monkeypatch.setattr(auth_dependencies, "_jwks_config", None)
    monkeypatch.setattr(flags, "AUTH_JWKS_URL", "")
    with pytest.raises(IdentityProviderError, match="OUTREACH_AUTH_JWKS_URL"):
        await get_jwks_configuration()


async def test_get_jwks_configuration_uses_cache(monkeypatch, signing_key):
    _, config = signing_key
    monkeypatch.setattr(auth_dependencies, "_jwks_config", config)
    monkeypatch.setattr(flags, "AUTH_JWKS_URL", "")
    assert await get_jwks_configuration() is config


def test_jwks_config_should_refresh():
    assert not JwksConfig(last_refreshed=datetime.datetime.now(), jwks={}).should_refresh()
    stale = datetime.datetime.now() - datetime.timedelta(hours=2)
    assert JwksConfig(last_refreshed=stale, jwks={}).should_refresh()


async def test_user_from_token_creates_user_once(outreach_session: AsyncSession):
    principal = Principal(email="first@example.com", iss=ISSUER, sub="sub_first")

    first = await require_user_from_token(outreach_session, principal)
    assert first.id.startswith("u_")
    assert first.external_id == "sub_first"
    assert first.email == "first@example.com"

    again = await require_user_from_token(outreach_session, principal)
    assert again.id == first.id
    count = await outreach_session.scalar(select(func.count()).select_from(tables.User))
    assert count == 1


async def test_user_from_token_refreshes_email(outreach_session: AsyncSession):
    principal = Principal(email="old@example.com", iss=ISSUER, sub="sub_moving")
    user = await require_user_from_token(outreach_session, principal)

    moved = await require_user_from_token(outreach_session, principal.model_copy(update={"email": "new@example.com"}))
    assert moved.id == user.id
    assert moved.email == "new@example.com"

    # A missing email claim does not erase the stored one.
    unchanged = await require_user_from_token(outreach_session, principal.model_copy(update={"email": ""}))
    assert unchanged.email == "new@example.com"


class SessionLosingUserCreationRace:
    """Wraps an AsyncSession so that a competing request creates the user right after the first lookup misses."""

    def __init__(self, session: AsyncSession, principal: Principal):
        self._session = session
        self._principal = principal
        self._raced = False

    async def execute(self, stmt):
        result = await self._session.execute(stmt)
        if not self._raced:
            self._raced = True
            engine = create_async_engine(flags.DATABASE_URL)
            async with AsyncSession(engine) as competitor:
                competitor.add(tables.User(external_id=self._principal.sub, email="winner@example.com"))
                await competitor.commit()
            await engine.dispose()
        return result

    def __getattr__(self, name):
        return getattr(self._session, name)


async def test_user_from_token_concurrent_first_request(outreach_session: AsyncSession):
    principal = Principal(email="loser@example.com", iss=ISSUER, sub="sub_racing")

    user = await require_user_from_token(SessionLosingUserCreationRace(outreach_session, principal), principal)

    assert user.external_id == "sub_racing"
    # The existing row is reused and its email brought up to date.
    assert user.email == "loser@example.com"
    count = await outreach_session.scalar(
        select(func.count()).select_from(tables.User).where(tables.User.external_id == "sub_racing")
    )
    assert count == 1
