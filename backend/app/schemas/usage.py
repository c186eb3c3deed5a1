from typing import Any

from pydantic import BaseModel, Field

from app.schemas.shared import UTCDateTime


class UsageEventInput(BaseModel):
    customer_id: str = Field(..., min_length=1)
    event_type: str = Field(..., min_length=1)
    timestamp: UTCDateTime
    transaction_id: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class UsageIngestRequest(BaseModel):
    usage: list[UsageEventInput]


class UsageIngestResponse(BaseModel):
    message: str
    count: int
