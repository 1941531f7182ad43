"""Common implementation of Sentry client configuration.

Entrypoints that want Sentry enabled when SENTRY_DSN is set can call setup().
"""

import os

from loguru import logger

from outreach.credentials.constants import ENV_IG_CREDENTIALS_KEY

# Keys whose values are removed from events before they are sent to Sentry.
DENYLIST_EXTRAS = [
    "dsn",  # command line flags
    "database_url",  # common name of variable containing application database credentials
    ENV_IG_CREDENTIALS_KEY.lower(),
    "secret",  # argument name used by the credential encryption functions
    "plaintext",
    "stored",
]

PII_DENYLIST_EXTRAS = [
    "email",
    "username",
    "recipient_username",
]


def setup():
    """Configures Sentry if SENTRY_DSN is present."""
    sentry_dsn = os.environ.get("SENTRY_DSN")
    if not sentry_dsn:
        return False
    logger.info("Setting up Sentry: {sentry_dsn}", sentry_dsn=sentry_dsn)

    import sentry_sdk  # noqa: PLC0415
    from sentry_sdk import scrubber  # noqa: PLC0415

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=os.environ.get("ENVIRONMENT", "local"),
        traces_sample_rate=1.0,
        send_default_pii=False,
        event_scrubber=scrubber.EventScrubber(
            denylist=[*scrubber.DEFAULT_DENYLIST, *DENYLIST_EXTRAS],
            pii_denylist=[*scrubber.DEFAULT_PII_DENYLIST, *PII_DENYLIST_EXTRAS],
        ),
    )
    return True
