from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from outreach.apiserver.constants import DEFAULT_DAILY_LIMIT, PASSWORD_COLUMN_LENGTH
from outreach.credentials import envelope

# The longest password, in UTF-8 bytes, whose encrypted envelope fits in platform_accounts.password.
MAX_PASSWORD_BYTES = envelope.max_plaintext_size(PASSWORD_COLUMN_LENGTH)


def coerce_daily_limit(value: int | float | str | None) -> int | None:
    """Interprets a daily limit supplied as a number or numeric string.

    Returns None when the value is missing, unparseable, or not positive.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if value != value or value in {float("inf"), float("-inf")}:
        return None
    # Truncate before checking: a limit between 0 and 1 allows no messages.
    value = int(value)
    if value <= 0:
        return None
    return value


def validate_password_size(value: str | None) -> str | None:
    if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


Password = Annotated[str | None, AfterValidator(validate_password_size)]


class AccountsApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AccountStats(AccountsApiBaseModel):
    messages_sent: Annotated[int, Field(description="Number of messages sent from this account.")]
    success_rate: Annotated[float, Field(description="Reserved; always 0.")] = 0
    daily_limit: int
    daily_used: Annotated[int, Field(description="Number of messages sent since midnight UTC.")]


class AccountSummary(AccountsApiBaseModel):
    id: str
    username: str
    is_active: bool
    last_login: Annotated[str, Field(description="ISO 8601 timestamp of the last login, or empty.")]
    proxy: str | None
    status: str = "connected"
    has_password: Annotated[bool, Field(description="True when a password is stored for this account.")]
    stats: AccountStats
    created_at: datetime


class ListAccountsResponse(AccountsApiBaseModel):
    accounts: list[AccountSummary]


class GetAccountResponse(AccountsApiBaseModel):
    account: AccountSummary


class CreateAccountRequest(AccountsApiBaseModel):
    username: Annotated[str, Field(max_length=255)] = ""
    password: Password = None
    proxy: str | None = None
    daily_limit: int | float | str | None = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()

    def effective_daily_limit(self) -> int:
        return coerce_daily_limit(self.daily_limit) or DEFAULT_DAILY_LIMIT


class CreateAccountResponse(AccountsApiBaseModel):
    account: AccountSummary


class UpdateAccountRequest(AccountsApiBaseModel):
    """Partially updates an account. Fields that are not present in the request are left unchanged."""

    username: Annotated[str | None, Field(max_length=255)] = None
    password: Annotated[Password, Field(description="An empty string clears the stored password.")] = None
    proxy: Annotated[str | None, Field(description="null clears the proxy.")] = None
    is_active: bool | None = None
    daily_limit: int | float | str | None = None


class SendMessageRequest(AccountsApiBaseModel):
    recipient_username: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
