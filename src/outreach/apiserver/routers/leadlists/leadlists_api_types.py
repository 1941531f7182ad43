from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class LeadListsApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class LeadListSummary(LeadListsApiBaseModel):
    id: str
    name: str
    usernames: list[str]
    created_at: datetime
    updated_at: datetime


class ListLeadListsResponse(LeadListsApiBaseModel):
    lists: list[LeadListSummary]


class GetLeadListResponse(LeadListsApiBaseModel):
    list: LeadListSummary


class CreateLeadListRequest(LeadListsApiBaseModel):
    name: Annotated[str, Field(max_length=255)] = ""
    usernames: list[str] = []


class CreateLeadListResponse(LeadListsApiBaseModel):
    list: LeadListSummary
