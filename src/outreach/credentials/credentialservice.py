import os
from typing import Optional

from loguru import logger

from outreach.credentials import envelope
from outreach.credentials.constants import ENV_IG_CREDENTIALS_KEY
from outreach.credentials.exceptions import InvalidCredentialsConfigurationError

_SERVICE: Optional["CredentialService"] = None


def encrypt_maybe(plaintext: str, secret: str | None) -> str:
    """Encrypts plaintext when a secret is configured, otherwise returns it unchanged.

    Encryption failures are logged and the plaintext is returned so that persisting a credential never fails because
    of the encryption layer.
    """
    if not secret:
        return plaintext
    try:
        return envelope.encrypt(plaintext, secret)
    except Exception as exc:
        logger.warning(f"Credentials: encryption failed ({type(exc).__name__}); storing value unencrypted")
        return plaintext


def decrypt_maybe(stored: str, secret: str | None) -> str:
    """Decrypts a stored value when a secret is configured, otherwise returns it unchanged.

    Values that cannot be decrypted (wrong key, tampering, malformed envelopes) are returned as stored.
    """
    if not secret:
        return stored
    try:
        return envelope.decrypt(stored, secret)
    except Exception as exc:
        logger.warning(f"Credentials: decryption failed ({type(exc).__name__}); returning stored value")
        return stored


class CredentialService:
    """Seals and reveals third-party account credentials with an optional secret."""

    def __init__(self, secret: str | None):
        self._secret = secret or None

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def seal(self, plaintext: str) -> str:
        """Prepares a credential for storage."""
        return encrypt_maybe(plaintext, self._secret)

    def reveal(self, stored: str) -> str:
        """Recovers a credential read from storage."""
        return decrypt_maybe(stored, self._secret)

    def __repr__(self):
        return f"CredentialService(enabled={self.enabled})"


def setup():
    """Configures the credential service from the environment."""
    global _SERVICE

    secret = os.environ.get(ENV_IG_CREDENTIALS_KEY, "")
    if not secret:
        logger.warning(
            f"Credentials: Encryption is disabled because {ENV_IG_CREDENTIALS_KEY} is unset. "
            "Account passwords will be stored as provided."
        )
    else:
        logger.info("Credentials: Account passwords will be encrypted at rest.")
    _SERVICE = CredentialService(secret)


def get_credential_service() -> CredentialService:
    if not _SERVICE:
        raise InvalidCredentialsConfigurationError("setup() must be called before credential operations")
    return _SERVICE
