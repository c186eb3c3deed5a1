"""Contract creation and lookup."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.contract import Contract
from app.models.shared import generate_id
from app.repositories.contract_repository import ContractRepository
from app.repositories.customer_repository import CustomerRepository
from app.repositories.uniqueness_key_repository import UniquenessKeyRepository
from app.schemas.contract import ContractAggregate, ContractCreate
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


class ContractService:
    """Service for contract business logic."""

    def __init__(self, db: Session, webhooks: WebhookService):
        self.db = db
        self.webhooks = webhooks
        self.contract_repo = ContractRepository(db)
        self.customer_repo = CustomerRepository(db)
        self.uniqueness_repo = UniquenessKeyRepository(db)

    def create_contract(self, data: ContractCreate) -> ContractAggregate:
        """Create a contract with an empty aggregate and announce it.

        A uniqueness key is generated when the caller supplies none; either way
        the key is registered so it cannot be reused.
        """
        if self.customer_repo.get_by_id(data.customer_id) is None:
            raise NotFoundError("Customer not found")
        if data.uniqueness_key and self.uniqueness_repo.exists(data.uniqueness_key):
            raise ConflictError("Contract already exists with same uniqueness_key")

        uniqueness_key = data.uniqueness_key or generate_id("uk")
        contract = Contract(
            id=generate_id("contract"),
            name=data.name,
            customer_id=data.customer_id,
            starting_at=data.starting_at,
            rate_card_id=data.rate_card_id,
            uniqueness_key=uniqueness_key,
            usage_statement_schedule=data.usage_statement_schedule or {"frequency": "MONTHLY"},
            billing_provider_configuration=data.billing_provider_configuration
            or {"billing_provider": "stripe"},
        )
        self.contract_repo.create(contract, commit=False)
        self.uniqueness_repo.add(uniqueness_key, commit=False)
        self.db.commit()
        logger.info("Created contract %s for customer %s", contract.id, data.customer_id)

        aggregate = self.get_contract(str(contract.id), data.customer_id)
        self.webhooks.emit_contract_event(aggregate, "contract.created")
        return aggregate

    def get_contract(self, contract_id: str, customer_id: str) -> ContractAggregate:
        aggregate = self.contract_repo.get_aggregate(contract_id)
        if aggregate is None or aggregate.customer_id != customer_id:
            raise NotFoundError("Contract not found")
        return aggregate

    def list_contracts(
        self, customer_id: str, covering_date: datetime | None = None
    ) -> list[ContractAggregate]:
        """Contracts of a customer, optionally only those started by ``covering_date``."""
        contracts = self.contract_repo.list_aggregates_for_customer(customer_id)
        if covering_date is not None:
            contracts = [c for c in contracts if c.starting_at <= covering_date]
        return contracts
