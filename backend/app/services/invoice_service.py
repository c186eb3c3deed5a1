"""Invoice creation for the emulated billing provider."""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.invoice import Invoice, InvoiceStatus
from app.models.shared import generate_id
from app.repositories.contract_repository import ContractRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.invoice_repository import InvoiceRepository
from app.schemas.invoice import InvoiceCreate
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

# Statuses that mean the billing provider rejected the invoice.
BILLING_PROVIDER_ERROR_STATUSES = {
    InvoiceStatus.PAYMENT_FAILED,
    InvoiceStatus.INVALID_REQUEST_ERROR,
}


class InvoiceService:
    def __init__(self, db: Session, webhooks: WebhookService):
        self.db = db
        self.webhooks = webhooks
        self.invoice_repo = InvoiceRepository(db)

    def create_invoice(
        self, customer_id: str, data: InvoiceCreate, now: datetime | None = None
    ) -> Invoice:
        """Create an invoice whose total is the sum of its line items."""
        if CustomerRepository(self.db).get_by_id(customer_id) is None:
            raise NotFoundError("Customer not found")
        contract = ContractRepository(self.db).get_by_id(data.contract_id)
        if contract is None or contract.customer_id != customer_id:
            raise NotFoundError("Contract not found")

        now = now or datetime.now(UTC)
        invoice_id = generate_id("inv")
        line_items = [
            {"id": generate_id("line"), **item.model_dump()} for item in data.line_items
        ]
        invoice = Invoice(
            id=invoice_id,
            customer_id=customer_id,
            contract_id=data.contract_id,
            type=data.type.value,
            status=data.status.value,
            issued_at=now,
            start_timestamp=data.start_timestamp or now,
            end_timestamp=data.end_timestamp,
            due_date=data.due_date,
            total=sum(item.amount for item in data.line_items),
            line_items=line_items,
            external_invoice={
                "invoice_id": generate_id("stripe_inv"),
                "external_status": "FINALIZED"
                if data.status == InvoiceStatus.FINALIZED
                else "DRAFT",
            },
            invoice_metadata={"metronome_id": invoice_id},
        )
        invoice = self.invoice_repo.create(invoice)

        if data.status in BILLING_PROVIDER_ERROR_STATUSES:
            logger.info("Invoice %s created with provider error status %s", invoice_id, data.status.value)
            self.webhooks.emit_invoice_billing_provider_error(
                customer_id=customer_id,
                invoice_id=invoice_id,
                error_message=f"Invoice {invoice_id} is {data.status.value}",
            )
        return invoice

    def get_invoice(self, customer_id: str, invoice_id: str) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if invoice is None or invoice.customer_id != customer_id:
            raise NotFoundError("Invoice not found")
        return invoice

    def void_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.invoice_repo.void(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")
        return invoice
