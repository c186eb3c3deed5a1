"""Prepaid balance bookkeeping and low-balance alerting."""

import logging

from sqlalchemy.orm import Session

from app.models.balance import Balance
from app.repositories.balance_repository import BalanceRepository
from app.repositories.contract_repository import ContractRepository
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


class BalanceService:
    """Service for customer balances."""

    def __init__(self, db: Session, webhooks: WebhookService):
        self.db = db
        self.webhooks = webhooks
        self.balance_repo = BalanceRepository(db)
        self.contract_repo = ContractRepository(db)

    def get_all_balances(self, customer_id: str) -> list[Balance]:
        return self.balance_repo.get_by_customer_id(customer_id)

    def set_balance_for_product(self, customer_id: str, product_id: str, amount: float) -> Balance:
        """Set a product balance and alert on every contract whose threshold it breaches.

        Only contracts with an enabled threshold configuration and a positive
        ``threshold_amount`` are considered; the balance breaches the threshold
        when it is at or below it.
        """
        balance = self.balance_repo.upsert(customer_id, product_id, amount)

        for contract in self.contract_repo.list_aggregates_for_customer(customer_id):
            config = contract.prepaid_balance_threshold_configuration
            if config is None or not config.is_enabled:
                continue
            if config.threshold_amount <= 0 or amount > config.threshold_amount:
                continue
            logger.info(
                "Balance %s for customer %s product %s is at or below threshold %s on contract %s",
                amount,
                customer_id,
                product_id,
                config.threshold_amount,
                contract.id,
            )
            self.webhooks.emit_low_balance_alert(
                customer_id=customer_id,
                contract_id=contract.id,
                threshold=config.threshold_amount,
                remaining_balance=amount,
            )
        return balance
