"""Webhook delivery for contract, payment-gate, balance and invoice events."""

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from email.utils import formatdate
from enum import Enum
from threading import Lock
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.models.shared import generate_id
from app.repositories.customer_repository import CustomerRepository
from app.schemas.contract import ContractAggregate

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Metronome-Webhook-Signature"
LEGACY_SIGNATURE_HEADER = "X-Metronome-Signature"

CONTRACT_EVENT_TYPES = ("contract.created", "contract.updated")
PAYMENT_GATE_EVENT = "payment_gate.payment_status"
LOW_BALANCE_EVENT = "alerts.low_remaining_contract_credit_and_commit_balance_reached"
BILLING_PROVIDER_ERROR_EVENT = "invoice.billing_provider_error"

DEFAULT_ALERT_ID = "customerBalanceDepleted"


class PaymentStatus(str, Enum):
    PAID = "paid"
    FAILED = "failed"


def serialize_event(event: dict[str, Any]) -> str:
    """Compact JSON, the exact text that gets signed and sent."""
    return json.dumps(event, separators=(",", ":"), default=str)


def generate_signature(date_header: str, payload: str, secret: str | None = None) -> str:
    """HMAC-SHA256 over ``"<date header>\\n<payload>"``, hex encoded."""
    key = secret if secret is not None else settings.WEBHOOK_SECRET
    return hmac.new(
        key.encode("utf-8"),
        f"{date_header}\n{payload}".encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(
    payload: str, date_header: str, signature: str, secret: str | None = None
) -> bool:
    expected = generate_signature(date_header, payload, secret)
    return hmac.compare_digest(expected, signature)


def resolve_target_url(target: str, default_path: str | None = None) -> str:
    """Append ``default_path`` to targets registered without a path."""
    trimmed = target.strip()
    path = default_path if default_path is not None else settings.WEBHOOK_DEFAULT_PATH
    if not trimmed or not path:
        return trimmed
    if not path.startswith("/"):
        path = f"/{path}"

    try:
        parts = urlsplit(trimmed)
    except ValueError:
        return trimmed
    if parts.scheme and parts.netloc:
        if parts.path in ("", "/"):
            return urlunsplit(parts._replace(path=path))
        return trimmed
    return f"{trimmed.rstrip('/')}{path}"


def resolve_alert_id() -> str:
    """Alert id for depleted-balance alerts.

    An explicit ``ALERT_CUSTOMER_BALANCE_DEPLETED`` wins, then
    ``alerts.customerBalanceDepleted`` from ``ALERT_CONFIG_JSON``.
    """
    if settings.ALERT_CUSTOMER_BALANCE_DEPLETED:
        return settings.ALERT_CUSTOMER_BALANCE_DEPLETED
    if settings.ALERT_CONFIG_JSON:
        try:
            parsed = json.loads(settings.ALERT_CONFIG_JSON)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse ALERT_CONFIG_JSON: %s", exc)
        else:
            alerts = parsed.get("alerts") if isinstance(parsed, dict) else None
            alert_id = alerts.get("customerBalanceDepleted") if isinstance(alerts, dict) else None
            if isinstance(alert_id, str) and alert_id:
                return alert_id
    return DEFAULT_ALERT_ID


class WebhookDispatcher:
    """Signs events and POSTs them to every registered target.

    ``emit`` hands delivery to a background pool and returns immediately;
    ``dispatch`` delivers in the calling thread. Each target is retried with
    exponential backoff, and a target that keeps failing is logged and
    skipped. Delivery problems are never raised to the caller.
    """

    def __init__(
        self,
        targets: list[str] | None = None,
        secret: str | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        timeout: float | None = None,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 4,
    ):
        self.secret = secret if secret is not None else settings.WEBHOOK_SECRET
        self.max_retries = max_retries if max_retries is not None else settings.WEBHOOK_MAX_RETRIES
        self.backoff_seconds = (
            backoff_seconds
            if backoff_seconds is not None
            else settings.WEBHOOK_RETRY_BACKOFF_SECONDS
        )
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS
        self._client_factory = client_factory
        self._sleep = sleep
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()
        self._targets: dict[str, None] = {}
        initial = targets if targets is not None else settings.webhook_targets
        for target in initial:
            try:
                self.register_target(target)
            except ValidationError as exc:
                logger.warning("Ignoring webhook target %r: %s", target, exc.message)

    @property
    def targets(self) -> list[str]:
        with self._lock:
            return list(self._targets)

    def register_target(self, target: str) -> None:
        url = resolve_target_url(target)
        if not url:
            return
        try:
            httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ValidationError(f"Invalid webhook target: {exc}") from exc
        with self._lock:
            self._targets[url] = None

    def remove_target(self, target: str) -> None:
        url = resolve_target_url(target)
        with self._lock:
            self._targets.pop(url, None)

    def clear_targets(self) -> None:
        with self._lock:
            self._targets.clear()

    def emit(self, event: dict[str, Any]) -> Future[dict[str, Any]]:
        """Queue ``event`` for background delivery."""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="webhooks"
                )
            executor = self._executor
        future = executor.submit(self.dispatch, event)
        future.add_done_callback(self._log_failed_delivery)
        return future

    @staticmethod
    def _log_failed_delivery(future: Future[dict[str, Any]]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Webhook delivery failed", exc_info=exc)

    def dispatch(self, event: dict[str, Any]) -> dict[str, Any]:
        """Deliver ``event`` to all targets now. Returns the event as sent."""
        if not event.get("id"):
            event = {**event, "id": generate_id("evt")}
        targets = self.targets
        if not targets:
            logger.debug("No webhook targets configured, skipping %s", event.get("type"))
            return event

        payload = serialize_event(event)
        date_header = formatdate(usegmt=True)
        headers = {
            "Content-Type": "application/json",
            "Date": date_header,
            SIGNATURE_HEADER: generate_signature(date_header, payload, self.secret),
        }
        with self._client_factory(timeout=self.timeout) as client:
            for target in targets:
                self._deliver(client, target, payload, headers, event.get("type"))
        return event

    def _deliver(
        self,
        client: httpx.Client,
        target: str,
        payload: str,
        headers: dict[str, str],
        event_type: Any,
    ) -> bool:
        for attempt in range(self.max_retries + 1):
            if attempt:
                self._sleep(self.backoff_seconds * 2 ** (attempt - 1))
            try:
                resp = client.post(target, content=payload.encode("utf-8"), headers=headers)
            except httpx.InvalidURL as exc:
                logger.error("Webhook %s -> %s has an invalid URL: %s", event_type, target, exc)
                return False
            except httpx.HTTPError as exc:
                logger.warning(
                    "Webhook %s -> %s failed (attempt %d): %s", event_type, target, attempt + 1, exc
                )
                continue
            if resp.is_success:
                return True
            logger.warning(
                "Webhook %s -> %s returned %d (attempt %d)",
                event_type,
                target,
                resp.status_code,
                attempt + 1,
            )
        logger.error("Giving up on webhook %s -> %s", event_type, target)
        return False

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)


class WebhookService:
    """Builds the typed events emitted by the contract and balance flows."""

    def __init__(self, db: Session, dispatcher: WebhookDispatcher):
        self.db = db
        self.dispatcher = dispatcher
        self.customer_repo = CustomerRepository(db)

    def emit_contract_event(self, contract: ContractAggregate, event_type: str) -> dict[str, Any]:
        if event_type not in CONTRACT_EVENT_TYPES:
            raise ValueError(f"Unsupported contract event type: {event_type}")
        event: dict[str, Any] = {
            "id": generate_id("evt"),
            "type": event_type,
            "contract_id": contract.id,
            "customer_id": contract.customer_id,
            "environment_type": settings.ENVIRONMENT_TYPE,
        }
        customer = self.customer_repo.get_by_id(contract.customer_id)
        if customer is not None and customer.custom_fields:
            event["customer_custom_fields"] = dict(customer.custom_fields)
        self.dispatcher.emit(event)
        return event

    def emit_payment_gate_status(
        self, customer_id: str, contract_id: str, payment_status: PaymentStatus
    ) -> dict[str, Any]:
        event = {
            "id": generate_id("evt"),
            "type": PAYMENT_GATE_EVENT,
            "properties": {
                "contract_id": contract_id,
                "customer_id": customer_id,
                "payment_status": PaymentStatus(payment_status).value,
            },
        }
        self.dispatcher.emit(event)
        return event

    def emit_low_balance_alert(
        self,
        customer_id: str,
        contract_id: str,
        threshold: float,
        remaining_balance: float,
    ) -> dict[str, Any]:
        event = {
            "id": generate_id("evt"),
            "type": LOW_BALANCE_EVENT,
            "properties": {
                "alert_id": resolve_alert_id(),
                "customer_id": customer_id,
                "threshold": threshold,
                "remaining_balance": remaining_balance,
                "contract_id": contract_id,
            },
        }
        self.dispatcher.emit(event)
        return event

    def emit_invoice_billing_provider_error(
        self, customer_id: str, invoice_id: str, error_message: str
    ) -> dict[str, Any]:
        event = {
            "id": generate_id("evt"),
            "type": BILLING_PROVIDER_ERROR_EVENT,
            "properties": {
                "invoice_id": invoice_id,
                "customer_id": customer_id,
                "billing_provider_error": error_message,
            },
        }
        self.dispatcher.emit(event)
        return event
