"""Webhook verification, target management and manual dispatch."""

import json
from email.utils import formatdate
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from app.core.dependencies import get_dispatcher
from app.core.errors import AuthenticationError, ValidationError
from app.schemas.webhook import (
    WebhookEventResponse,
    WebhookTargetListResponse,
    WebhookTargetRequest,
)
from app.services.webhook_service import (
    LEGACY_SIGNATURE_HEADER,
    SIGNATURE_HEADER,
    WebhookDispatcher,
    verify_signature,
)

router = APIRouter()


@router.post("/verify", summary="Verify a signed webhook payload")
@router.post("/webhooks/verify", include_in_schema=False)
async def verify_webhook(request: Request) -> Any:
    """Echo the payload back when its signature is valid."""
    signature = request.headers.get(SIGNATURE_HEADER) or request.headers.get(
        LEGACY_SIGNATURE_HEADER
    )
    if not signature:
        raise AuthenticationError("Missing signature")
    date_header = request.headers.get("Date") or formatdate(usegmt=True)
    raw_body = (await request.body()).decode("utf-8")
    if not verify_signature(raw_body, date_header, signature):
        raise AuthenticationError("Invalid signature")
    try:
        return json.loads(raw_body) if raw_body else {}
    except json.JSONDecodeError as exc:
        raise ValidationError("Payload is not valid JSON") from exc


@router.get("/subscriptions", response_model=WebhookTargetListResponse, summary="List targets")
async def list_targets(
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookTargetListResponse:
    return WebhookTargetListResponse(data=dispatcher.targets)


@router.post("/subscriptions", response_model=WebhookTargetListResponse, summary="Add target")
async def register_target(
    data: WebhookTargetRequest,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookTargetListResponse:
    if not data.target or not data.target.strip():
        raise ValidationError("target is required")
    dispatcher.register_target(data.target)
    return WebhookTargetListResponse(data=dispatcher.targets)


@router.delete(
    "/subscriptions",
    response_model=WebhookTargetListResponse,
    summary="Remove one target, or all when none is given",
)
async def remove_targets(
    data: WebhookTargetRequest | None = Body(default=None),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookTargetListResponse:
    if data is not None and data.target and data.target.strip():
        dispatcher.remove_target(data.target)
    else:
        dispatcher.clear_targets()
    return WebhookTargetListResponse(data=dispatcher.targets)


@router.post("/dispatch", response_model=WebhookEventResponse, summary="Dispatch a raw event")
def dispatch_event(
    payload: dict[str, Any] = Body(...),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookEventResponse:
    """Deliver an event to every target now. ``{"event": {...}}`` is unwrapped."""
    event = payload["event"] if set(payload) == {"event"} else payload
    if not isinstance(event, dict) or not event:
        raise ValidationError("event payload is required")
    return WebhookEventResponse(data=dispatcher.dispatch(event))
