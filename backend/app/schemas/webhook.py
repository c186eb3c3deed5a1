"""Webhook target and event schemas."""

from typing import Any

from pydantic import BaseModel


class WebhookTargetRequest(BaseModel):
    target: str | None = None


class WebhookTargetListResponse(BaseModel):
    data: list[str]


class WebhookEventResponse(BaseModel):
    data: dict[str, Any]
