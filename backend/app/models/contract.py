"""Contract model.

A single row carries both the V1 contract header (name, rate card, statement
schedule) and the V2 aggregate collections, which are stored as JSON and
mutated only through the contract edit processor.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from app.core.database import Base
from app.models.shared import utc_now


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(String(64), primary_key=True)
    customer_id = Column(
        String(64), ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name = Column(String(255), nullable=True)
    uniqueness_key = Column(String(255), nullable=True, index=True)
    starting_at = Column(DateTime(timezone=True), nullable=False)
    rate_card_id = Column(String(255), nullable=True)
    usage_statement_schedule = Column(JSON, nullable=False, default=lambda: {"frequency": "MONTHLY"})
    billing_provider_configuration = Column(
        JSON, nullable=False, default=lambda: {"billing_provider": "stripe"}
    )

    # V2 aggregate collections
    subscriptions = Column(JSON, nullable=False, default=list)
    credits = Column(JSON, nullable=False, default=list)
    recurring_credits = Column(JSON, nullable=False, default=list)
    overrides = Column(JSON, nullable=False, default=list)
    prepaid_balance_threshold_configuration = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
