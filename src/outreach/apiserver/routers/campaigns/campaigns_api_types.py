from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CampaignStatus = Literal["draft", "active", "paused", "completed"]


class CampaignsApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CampaignStats(CampaignsApiBaseModel):
    """Delivery counters. Reserved; always 0."""

    messages_sent: int = 0
    messages_delivered: int = 0
    messages_read: int = 0
    success_rate: float = 0


class CampaignSummary(CampaignsApiBaseModel):
    id: str
    name: str
    description: str
    status: CampaignStatus
    message_template_id: str | None
    target_criteria: dict[str, Any]
    schedule: dict[str, Any]
    settings: dict[str, Any]
    stats: CampaignStats
    created_at: datetime
    updated_at: datetime


class ListCampaignsResponse(CampaignsApiBaseModel):
    campaigns: list[CampaignSummary]


class GetCampaignResponse(CampaignsApiBaseModel):
    campaign: CampaignSummary


class CreateCampaignRequest(CampaignsApiBaseModel):
    name: Annotated[str, Field(max_length=255)] = ""
    description: str | None = None
    status: CampaignStatus = "draft"
    message_template_id: str | None = None
    target_criteria: dict[str, Any] | None = None
    schedule: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None


class CreateCampaignResponse(CampaignsApiBaseModel):
    campaign: CampaignSummary


class UpdateCampaignRequest(CampaignsApiBaseModel):
    """Partially updates a campaign. Fields that are not present in the request are left unchanged.

    message_template_id may be set to null to detach the campaign from its template.
    """

    name: Annotated[str | None, Field(max_length=255)] = None
    description: str | None = None
    status: CampaignStatus | None = None
    message_template_id: str | None = None
    target_criteria: dict[str, Any] | None = None
    schedule: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None


class MessageSummary(CampaignsApiBaseModel):
    id: str
    campaign_id: str | None
    platform_account_id: str
    recipient_username: str
    content: str
    status: str
    sent_at: datetime | None
    created_at: datetime
    error: str | None


class ListMessagesResponse(CampaignsApiBaseModel):
    messages: list[MessageSummary]


class GetMessageResponse(CampaignsApiBaseModel):
    message: MessageSummary


class UpdateMessageRequest(CampaignsApiBaseModel):
    status: Annotated[str, Field(max_length=32)] = ""
    error: str | None = None
