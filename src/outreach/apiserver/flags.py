"""Flags describes values that are read from the environment."""

import enum
import os


def is_dev_environment():
    return os.environ.get("ENVIRONMENT", "") in {"dev", ""}


def is_railway() -> bool:
    return os.environ.get("RAILWAY_SERVICE_NAME", "") != ""


def truthy_env(env_var: str):
    """Return True if the environment variable is "true" or "1", or False otherwise."""
    return os.environ.get(env_var, "").lower() in {"true", "1"}


# Flags configuring session token verification. Session tokens are RS256 JWTs minted by the identity provider and
# verified against its published JWKS.
AIRPLANE_MODE = truthy_env("AIRPLANE_MODE")
ENV_AUTH_JWKS_URL = "OUTREACH_AUTH_JWKS_URL"
AUTH_JWKS_URL = os.environ.get(ENV_AUTH_JWKS_URL, "")
ENV_AUTH_ISSUER = "OUTREACH_AUTH_ISSUER"
AUTH_ISSUER = os.environ.get(ENV_AUTH_ISSUER, "")

# Hosting providers may set hosted database URL as DATABASE_URL, so we use the same.
DATABASE_URL = os.environ.get("DATABASE_URL")

LOG_SQL_APP_DB = truthy_env("LOG_SQL_APP_DB")

# Comma-separated list of origins allowed to call the API from a browser, e.g. the campaign dashboard.
ENV_CORS_ORIGINS = "OUTREACH_CORS_ORIGINS"
CORS_ORIGINS = [o.strip() for o in os.environ.get(ENV_CORS_ORIGINS, "*").split(",") if o.strip()]


class LogFormat(enum.StrEnum):
    FRIENDLY = "friendly"
    STRUCTURED_RAILWAY = "structured_railway"
    DEFAULT = "default"

    @classmethod
    def from_env(cls):
        if is_railway():
            return LogFormat.STRUCTURED_RAILWAY
        if is_dev_environment():
            return LogFormat.FRIENDLY
        return LogFormat.DEFAULT


LOG_FORMAT = LogFormat.from_env()
