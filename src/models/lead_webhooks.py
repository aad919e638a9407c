from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.domain.lead_mapping import MAPPING_TARGETS


LeadProviderName = Literal["homeadvisor", "thumbtack", "angi", "custom"]
LeadLogStatus = Literal["success", "failed", "duplicate"]


def _validate_mapping(value: dict[str, str] | None) -> dict[str, str] | None:
    if value is None:
        return value
    for source_path, target in value.items():
        if not source_path.strip() or any(not part for part in source_path.split(".")):
            raise ValueError(f"Invalid source path: {source_path!r}")
        if target not in MAPPING_TARGETS:
            raise ValueError(f"Unsupported target field: {target!r}")
    return value


class LeadWebhookEndpointCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    provider: LeadProviderName
    slug: str | None = Field(default=None, min_length=4, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    api_key: str | None = None
    secret: str | None = None
    field_mapping: dict[str, str] | None = None

    @field_validator("field_mapping")
    @classmethod
    def check_field_mapping(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        return _validate_mapping(value)

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "HomeAdvisor leads",
                "provider": "homeadvisor",
                "secret": "whsec_example",
                "field_mapping": {"lead.companyName": "company_name"},
            }
        }
    }


class LeadWebhookEndpointUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    api_key: str | None = None
    secret: str | None = None
    field_mapping: dict[str, str] | None = None
    is_active: bool | None = None

    @field_validator("field_mapping")
    @classmethod
    def check_field_mapping(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        return _validate_mapping(value)

    @field_validator("name", "field_mapping", "is_active")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Only the credentials can be cleared.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class LeadWebhookEndpointResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    slug: str
    provider: LeadProviderName
    api_key: str | None = None
    secret: str | None = None
    field_mapping: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    leads_received: int = 0
    last_lead_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LeadProviderOption(BaseModel):
    value: LeadProviderName
    label: str


class LeadWebhookLogItem(BaseModel):
    id: str
    endpoint_id: str | None = None
    organization_id: str
    raw_payload: Any = None
    headers: dict[str, str] | None = None
    ip_address: str | None = None
    status: LeadLogStatus
    error_message: str | None = None
    customer_id: str | None = None
    opportunity_id: str | None = None
    created_at: datetime | None = None


class LeadIngestResponse(BaseModel):
    """Public contract of the inbound webhook."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    customer_id: str | None = Field(default=None, alias="customerId")
    error: str | None = None
