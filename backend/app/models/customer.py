from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from app.core.database import Base
from app.models.shared import utc_now


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    ingest_aliases = Column(JSON, nullable=False, default=list)
    customer_billing_provider_configurations = Column(JSON, nullable=False, default=list)
    custom_fields = Column(JSON, nullable=False, default=dict)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class CustomerIngestAlias(Base):
    """Reverse index from an ingest alias to the customer that owns it."""

    __tablename__ = "customer_ingest_aliases"

    alias = Column(String(255), primary_key=True)
    customer_id = Column(
        String(64), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
