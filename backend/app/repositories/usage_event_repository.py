from sqlalchemy.orm import Session

from app.models.shared import generate_id
from app.models.usage_event import UsageEvent
from app.schemas.usage import UsageEventInput


class UsageEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_batch(self, events: list[UsageEventInput]) -> list[UsageEvent]:
        """Store a batch of already-validated events in one transaction."""
        rows = [
            UsageEvent(
                **event.model_dump(exclude={"transaction_id"}),
                transaction_id=event.transaction_id or generate_id("txn"),
            )
            for event in events
        ]
        self.db.add_all(rows)
        self.db.commit()
        return rows

    def get_all(self, customer_id: str | None = None) -> list[UsageEvent]:
        query = self.db.query(UsageEvent)
        if customer_id:
            query = query.filter(UsageEvent.customer_id == customer_id)
        return query.order_by(UsageEvent.id.asc()).all()
