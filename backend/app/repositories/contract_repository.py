"""Contract repository: keyed retrieval and whole-aggregate replacement."""

from sqlalchemy.orm import Session

from app.models.contract import Contract
from app.schemas.contract import ContractAggregate


class ContractRepository:
    """Repository for Contract model.

    The V2 aggregate is handed out as a detached ``ContractAggregate``; changes
    made to it reach the database only through ``update_aggregate``.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, contract_id: str) -> Contract | None:
        return self.db.query(Contract).filter(Contract.id == contract_id).first()

    def get_aggregate(self, contract_id: str) -> ContractAggregate | None:
        contract = self.get_by_id(contract_id)
        if contract is None:
            return None
        return self._to_aggregate(contract)

    def list_aggregates_for_customer(self, customer_id: str) -> list[ContractAggregate]:
        contracts = (
            self.db.query(Contract)
            .filter(Contract.customer_id == customer_id)
            .order_by(Contract.created_at.asc())
            .all()
        )
        return [self._to_aggregate(c) for c in contracts]

    def create(self, contract: Contract, commit: bool = True) -> Contract:
        self.db.add(contract)
        if commit:
            self.db.commit()
            self.db.refresh(contract)
        return contract

    def update_aggregate(self, aggregate: ContractAggregate, commit: bool = True) -> Contract | None:
        """Replace the stored V2 collections with those of ``aggregate``."""
        contract = self.get_by_id(aggregate.id)
        if contract is None:
            return None
        data = aggregate.model_dump(mode="json")
        contract.subscriptions = data["subscriptions"]
        contract.credits = data["credits"]
        contract.recurring_credits = data["recurring_credits"]
        contract.overrides = data["overrides"]
        contract.prepaid_balance_threshold_configuration = data[
            "prepaid_balance_threshold_configuration"
        ]
        if commit:
            self.db.commit()
            self.db.refresh(contract)
        return contract

    @staticmethod
    def _to_aggregate(contract: Contract) -> ContractAggregate:
        return ContractAggregate.model_validate(
            {
                "id": contract.id,
                "customer_id": contract.customer_id,
                "starting_at": contract.starting_at,
                "uniqueness_key": contract.uniqueness_key,
                "subscriptions": contract.subscriptions or [],
                "credits": contract.credits or [],
                "recurring_credits": contract.recurring_credits or [],
                "overrides": contract.overrides or [],
                "prepaid_balance_threshold_configuration": (
                    contract.prepaid_balance_threshold_configuration
                ),
            }
        )
