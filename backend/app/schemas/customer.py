from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.shared import UTCDateTime


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    ingest_aliases: list[str] = Field(default_factory=list)
    customer_billing_provider_configurations: list[dict[str, Any]] = Field(default_factory=list)
    custom_fields: dict[str, str] = Field(default_factory=dict)


class CustomerArchiveRequest(BaseModel):
    id: str = Field(..., min_length=1)


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    ingest_aliases: list[str]
    customer_billing_provider_configurations: list[dict[str, Any]]
    custom_fields: dict[str, str]
    archived_at: UTCDateTime | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class CustomerDataResponse(BaseModel):
    data: CustomerResponse


class CustomerIdData(BaseModel):
    id: str


class CustomerIdResponse(BaseModel):
    data: CustomerIdData

