from datetime import datetime

from sqlalchemy.orm import Session

from app.models.invoice import Invoice, InvoiceStatus


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invoice_id: str) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_all(
        self,
        customer_id: str,
        status: str | None = None,
        starting_on: datetime | None = None,
        ending_before: datetime | None = None,
        sort: str = "date_desc",
        limit: int | None = None,
    ) -> list[Invoice]:
        query = self.db.query(Invoice).filter(Invoice.customer_id == customer_id)

        if status:
            query = query.filter(Invoice.status == status.upper())
        if starting_on is not None:
            query = query.filter(
                Invoice.start_timestamp.isnot(None), Invoice.start_timestamp >= starting_on
            )
        if ending_before is not None:
            query = query.filter(
                Invoice.start_timestamp.isnot(None), Invoice.start_timestamp < ending_before
            )

        if sort == "date_asc":
            query = query.order_by(Invoice.issued_at.asc())
        elif sort == "date_desc":
            query = query.order_by(Invoice.issued_at.desc())

        if limit:
            query = query.limit(limit)
        return query.all()

    def create(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def void(self, invoice_id: str) -> Invoice | None:
        invoice = self.get_by_id(invoice_id)
        if not invoice:
            return None
        invoice.status = InvoiceStatus.VOIDED.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice
