"""Balance model: the remaining prepaid balance of one product for one customer."""

from sqlalchemy import Column, DateTime, Float, String

from app.core.database import Base
from app.models.shared import utc_now


class Balance(Base):
    __tablename__ = "balances"

    customer_id = Column(String(64), primary_key=True)
    product_id = Column(String(255), primary_key=True)
    product_name = Column(String(255), nullable=False)
    balance = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
