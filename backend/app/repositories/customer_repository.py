from sqlalchemy.orm import Session

from app.models.customer import Customer, CustomerIngestAlias
from app.models.shared import generate_id, utc_now
from app.schemas.customer import CustomerCreate


class CustomerRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: str) -> Customer | None:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def find_by_ingest_alias(self, alias: str) -> Customer | None:
        row = self.db.query(CustomerIngestAlias).filter(CustomerIngestAlias.alias == alias).first()
        if row is None:
            return None
        return self.get_by_id(str(row.customer_id))

    def create(self, data: CustomerCreate) -> Customer:
        customer = Customer(id=generate_id("cus"), **data.model_dump())
        self.db.add(customer)
        self.db.flush()
        for alias in dict.fromkeys(data.ingest_aliases):
            self.db.add(CustomerIngestAlias(alias=alias, customer_id=customer.id))
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def archive(self, customer_id: str) -> Customer | None:
        customer = self.get_by_id(customer_id)
        if not customer:
            return None
        customer.archived_at = utc_now()  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(customer)
        return customer
