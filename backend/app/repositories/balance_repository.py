"""Balance repository for data access."""

from sqlalchemy.orm import Session

from app.models.balance import Balance


class BalanceRepository:
    """Repository for Balance model."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: str, product_id: str) -> Balance | None:
        return (
            self.db.query(Balance)
            .filter(Balance.customer_id == customer_id, Balance.product_id == product_id)
            .first()
        )

    def get_by_customer_id(self, customer_id: str) -> list[Balance]:
        return (
            self.db.query(Balance)
            .filter(Balance.customer_id == customer_id)
            .order_by(Balance.product_id.asc())
            .all()
        )

    def upsert(self, customer_id: str, product_id: str, amount: float) -> Balance:
        """Set the balance for a product, creating the row when absent."""
        balance = self.get(customer_id, product_id)
        if balance is None:
            balance = Balance(
                customer_id=customer_id,
                product_id=product_id,
                product_name=f"Product {product_id}",
            )
            self.db.add(balance)
        balance.balance = amount  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(balance)
        return balance
