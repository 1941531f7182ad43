from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TemplatesApiBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TemplateVariable(TemplatesApiBaseModel):
    """Describes a {name} placeholder in a template's content."""

    name: Annotated[str, Field(min_length=1, max_length=100)]
    type: Literal["text", "number", "date"] = "text"
    default_value: str = ""
    required: bool = False


class TemplateSummary(TemplatesApiBaseModel):
    id: str
    name: str
    content: str
    variables: list[TemplateVariable]
    is_active: bool
    usage: Annotated[int, Field(description="Reserved; always 0.")] = 0
    success_rate: Annotated[float, Field(description="Reserved; always 0.")] = 0
    created_at: datetime
    updated_at: datetime


class ListTemplatesResponse(TemplatesApiBaseModel):
    templates: list[TemplateSummary]


class GetTemplateResponse(TemplatesApiBaseModel):
    template: TemplateSummary


class CreateTemplateRequest(TemplatesApiBaseModel):
    name: Annotated[str, Field(max_length=255)] = ""
    content: str = ""
    variables: list[TemplateVariable] = []
    is_active: bool = True


class CreateTemplateResponse(TemplatesApiBaseModel):
    template: TemplateSummary


class UpdateTemplateRequest(TemplatesApiBaseModel):
    """Partially updates a template. Fields that are not present in the request are left unchanged."""

    name: Annotated[str | None, Field(max_length=255)] = None
    content: str | None = None
    variables: list[TemplateVariable] | None = None
    is_active: bool | None = None
