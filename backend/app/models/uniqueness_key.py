"""UniquenessKey model: caller-supplied tokens that may be used only once."""

from sqlalchemy import Column, DateTime, String

from app.core.database import Base
from app.models.shared import utc_now


class UniquenessKey(Base):
    __tablename__ = "uniqueness_keys"

    key = Column(String(255), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
