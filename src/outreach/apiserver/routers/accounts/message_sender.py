"""Delivers messages through a third-party platform on behalf of a platform account."""

import dataclasses
from typing import Protocol

from outreach.apiserver.exceptions_common import SendingNotImplementedError
from outreach.apiserver.sqla import tables
from outreach.credentials.credentialservice import CredentialService


@dataclasses.dataclass(slots=True, frozen=True)
class PlatformCredentials:
    username: str
    password: str = dataclasses.field(repr=False)
    proxy: str | None = None


def load_platform_credentials(account: tables.PlatformAccount, service: CredentialService) -> PlatformCredentials:
    """Reveals the stored credentials of an account.

    A password that cannot be decrypted is passed along as stored; the platform will reject it at login.
    """
    return PlatformCredentials(username=account.username, password=service.reveal(account.password), proxy=account.proxy)


class MessageSender(Protocol):
    async def send(self, credentials: PlatformCredentials, recipient_username: str, message: str) -> None:
        """Sends message to recipient_username using credentials."""


class UnimplementedMessageSender:
    async def send(self, credentials: PlatformCredentials, recipient_username: str, message: str) -> None:
        raise SendingNotImplementedError()


def message_sender_dependency() -> MessageSender:
    """Returns the MessageSender used by the API; to be overridden by tests."""
    return UnimplementedMessageSender()
