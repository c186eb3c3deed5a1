"""FastAPI dependencies for collaborators owned by the application root."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.webhook_service import WebhookDispatcher, WebhookService


def get_dispatcher(request: Request) -> WebhookDispatcher:
    dispatcher: WebhookDispatcher = request.app.state.webhook_dispatcher
    return dispatcher


def get_webhook_service(
    db: Session = Depends(get_db),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> WebhookService:
    return WebhookService(db, dispatcher)
