from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from app.core.database import Base
from app.models.shared import utc_now


class UsageEvent(Base):
    __tablename__ = "usage_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(255), nullable=False, index=True)
    customer_id = Column(String(255), nullable=False)
    event_type = Column(String(255), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    properties = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_usage_events_customer_id", "customer_id"),
        Index("ix_usage_events_customer_type_timestamp", "customer_id", "event_type", "timestamp"),
    )
