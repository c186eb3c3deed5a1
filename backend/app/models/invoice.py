from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, String

from app.core.database import Base
from app.models.shared import utc_now


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    FINALIZED = "FINALIZED"
    PAID = "PAID"
    UNCOLLECTIBLE = "UNCOLLECTIBLE"
    VOIDED = "VOIDED"
    DELETED = "DELETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    INVALID_REQUEST_ERROR = "INVALID_REQUEST_ERROR"
    SKIPPED = "SKIPPED"
    SENT = "SENT"
    QUEUED = "QUEUED"


class InvoiceType(str, Enum):
    USAGE = "USAGE"
    SUBSCRIPTION = "SUBSCRIPTION"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(64), primary_key=True)
    customer_id = Column(
        String(64), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    contract_id = Column(String(64), ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False)
    type = Column(String(20), nullable=False, default=InvoiceType.USAGE.value)
    status = Column(String(30), nullable=False, default=InvoiceStatus.FINALIZED.value)

    issued_at = Column(DateTime(timezone=True), nullable=True)
    start_timestamp = Column(DateTime(timezone=True), nullable=True)
    end_timestamp = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)

    total = Column(Float, nullable=False, default=0)

    # Line items stored as JSON array
    line_items = Column(JSON, nullable=False, default=list)
    external_invoice = Column(JSON, nullable=True)
    invoice_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
