"""Contract edit processing.

An edit is applied in a fixed order against a detached copy of the contract
aggregate: subscription updates, recurring-credit updates, credit archival,
subscription additions, recurring-credit additions (with bridging), credit
additions (with automatic next-period credits), override additions and
threshold configuration. The copy is persisted only once every step has
succeeded, so a failed edit leaves the stored contract untouched.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.core.errors import BillingError, ConflictError, InternalError, NotFoundError, ValidationError
from app.core.locks import ContractLockRegistry, contract_locks
from app.models.shared import generate_id
from app.repositories.contract_repository import ContractRepository
from app.repositories.uniqueness_key_repository import UniquenessKeyRepository
from app.schemas.contract import (
    AccessSchedule,
    ContractAggregate,
    Credit,
    PrepaidBalanceThresholdConfiguration,
    ProductOverride,
    ProductRef,
    QuantityScheduleItem,
    RecurringCredit,
    ScheduleItem,
    Subscription,
    SubscriptionConfig,
    SubscriptionRate,
)
from app.schemas.contract_edit import ContractEditRequest, CreditAddEntry
from app.services.balance_service import BalanceService
from app.services.contract_dates import (
    calculate_billing_periods,
    floor_to_hour,
    floor_to_month,
    month_period_after,
)
from app.services.credit_bridging import BridgeResult, CreditBridgingResolver, upsert_period_credit
from app.services.recurring_credit_matcher import find_active_recurring_credit
from app.services.webhook_service import PaymentStatus, WebhookService

logger = logging.getLogger(__name__)

# Threshold fields that cannot be cleared by an explicit null in a patch.
_REQUIRED_THRESHOLD_FIELDS = ("is_enabled", "threshold_amount", "recharge_to_amount")


@dataclass
class ContractEditResult:
    """Outcome of one applied edit."""

    id: str
    contract: ContractAggregate
    bridges: list[BridgeResult] = field(default_factory=list)
    payment_status: PaymentStatus | None = None


class ContractEditService:
    """Applies edit requests to contracts, one contract at a time."""

    def __init__(
        self,
        db: Session,
        webhooks: WebhookService,
        locks: ContractLockRegistry = contract_locks,
    ):
        self.db = db
        self.webhooks = webhooks
        self.locks = locks
        self.contract_repo = ContractRepository(db)
        self.uniqueness_repo = UniquenessKeyRepository(db)
        self.balance_service = BalanceService(db, webhooks)

    def edit_contract(
        self, request: ContractEditRequest, now: datetime | None = None
    ) -> ContractEditResult:
        """Apply ``request`` and return the generated edit id with the new aggregate.

        Raises:
            ValidationError: ``contract_id`` is missing.
            NotFoundError: the contract does not exist or belongs to another customer.
            ConflictError: the uniqueness key has already been used.
            InternalError: any unexpected failure; nothing is persisted.
        """
        if not request.contract_id:
            raise ValidationError("contract_id is required")
        now = now or datetime.now(UTC)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Editing contract %s: %s",
                request.contract_id,
                request.model_dump_json(exclude_defaults=True),
            )

        with self.locks.hold(request.contract_id):
            contract = self.contract_repo.get_aggregate(request.contract_id)
            if contract is None or contract.customer_id != request.customer_id:
                raise NotFoundError("Contract not found")
            if request.uniqueness_key and self.uniqueness_repo.exists(request.uniqueness_key):
                raise ConflictError("Uniqueness key already used")

            result = ContractEditResult(id=generate_id("edit"), contract=contract)
            try:
                self._apply(contract, request, now, result)
                if request.uniqueness_key:
                    self.uniqueness_repo.add(request.uniqueness_key, commit=False)
                self.contract_repo.update_aggregate(contract, commit=False)
                self.db.commit()
            except BillingError:
                self.db.rollback()
                raise
            except Exception as exc:
                self.db.rollback()
                logger.exception("Failed to edit contract %s", request.contract_id)
                raise InternalError("Internal server error") from exc

        if result.payment_status is not None:
            self._settle_payment_gate(contract, result.payment_status)
        self.webhooks.emit_contract_event(contract, "contract.updated")

        logger.debug(
            "Edited contract %s: %d subscriptions, %d credits, %d recurring credits",
            contract.id,
            len(contract.subscriptions),
            len(contract.credits),
            len(contract.recurring_credits),
        )
        return result

    def _apply(
        self,
        contract: ContractAggregate,
        request: ContractEditRequest,
        now: datetime,
        result: ContractEditResult,
    ) -> None:
        self._update_subscriptions(contract, request, now)
        self._update_recurring_credits(contract, request)
        self._archive_credits(contract, request, now)
        self._add_subscriptions(contract, request)
        result.bridges.extend(self._add_recurring_credits(contract, request, now))
        self._add_credits(contract, request)
        self._add_overrides(contract, request)
        result.payment_status = self._apply_threshold_configuration(contract, request)

    def _update_subscriptions(
        self, contract: ContractAggregate, request: ContractEditRequest, now: datetime
    ) -> None:
        for update in request.update_subscriptions:
            sub = contract.find_subscription(update.subscription_id)
            if sub is None:
                continue
            if update.ending_before is not None:
                sub.ending_before = update.ending_before
            current = sub.billing_periods.current if sub.billing_periods else None
            # Future period ends must sit on a month boundary.
            if current is not None and current.ending_before is not None:
                if current.ending_before > now:
                    current.ending_before = floor_to_hour(floor_to_month(current.ending_before))

    def _update_recurring_credits(
        self, contract: ContractAggregate, request: ContractEditRequest
    ) -> None:
        for update in request.update_recurring_credits:
            rc = next((r for r in contract.recurring_credits if r.id == update.recurring_credit_id), None)
            if rc is not None and update.ending_before is not None:
                rc.ending_before = update.ending_before

    def _archive_credits(
        self, contract: ContractAggregate, request: ContractEditRequest, now: datetime
    ) -> None:
        archived_ids = {entry.id for entry in request.archive_credits}
        for credit in contract.credits:
            if credit.id in archived_ids:
                credit.archived_at = now

    def _add_subscriptions(self, contract: ContractAggregate, request: ContractEditRequest) -> None:
        for entry in request.add_subscriptions:
            rate = entry.subscription_rate
            contract.subscriptions.append(
                Subscription(
                    id=entry.temporary_id or generate_id("sub"),
                    starting_at=entry.starting_at,
                    subscription_rate=SubscriptionRate(
                        product=ProductRef.for_product(rate.product_id),
                        billing_frequency=rate.billing_frequency,
                    ),
                    quantity_schedule=[
                        QuantityScheduleItem(
                            quantity=entry.initial_quantity or 1,
                            starting_at=entry.starting_at,
                        )
                    ],
                    custom_fields=dict(entry.custom_fields),
                    billing_periods=calculate_billing_periods(
                        entry.starting_at, rate.billing_frequency
                    ),
                )
            )

    def _add_recurring_credits(
        self, contract: ContractAggregate, request: ContractEditRequest, now: datetime
    ) -> list[BridgeResult]:
        resolver = CreditBridgingResolver(contract, request, now)
        bridges: list[BridgeResult] = []
        for entry in request.add_recurring_credits:
            rc_start = floor_to_hour(entry.starting_at)
            existing = find_active_recurring_credit(
                contract.recurring_credits,
                entry.product_id,
                rc_start,
                entry.subscription_id,
                rc_start,
            )
            if existing is None:
                contract.recurring_credits.append(
                    RecurringCredit(
                        id=generate_id("rc"),
                        product=ProductRef.for_product(entry.product_id),
                        starting_at=rc_start,
                        subscription_config=(
                            SubscriptionConfig(subscription_id=entry.subscription_id)
                            if entry.subscription_id
                            else None
                        ),
                    )
                )
            bridge = resolver.bridge(entry)
            if bridge is not None:
                bridges.append(bridge)
        return bridges

    def _add_credits(self, contract: ContractAggregate, request: ContractEditRequest) -> None:
        for entry in request.add_credits:
            subscription_config = (
                SubscriptionConfig(subscription_id=entry.subscription_id)
                if entry.subscription_id
                else None
            )
            if not entry.has_schedule_items:
                contract.credits.append(
                    Credit(
                        id=generate_id("credit"),
                        product=ProductRef.for_product(entry.product_id),
                        access_schedule=entry.access_schedule.model_copy(deep=True)
                        if entry.access_schedule
                        else None,
                        custom_fields=dict(entry.custom_fields),
                        subscription_config=subscription_config,
                    )
                )
                continue

            assert entry.access_schedule is not None
            for item in entry.access_schedule.schedule_items:
                contract.credits.append(
                    Credit(
                        id=generate_id("credit"),
                        product=ProductRef.for_product(entry.product_id),
                        access_schedule=AccessSchedule(
                            credit_type_id=entry.access_schedule.credit_type_id,
                            schedule_items=[item.model_copy()],
                        ),
                        custom_fields=dict(entry.custom_fields),
                        subscription_config=subscription_config,
                    )
                )
                self._add_next_period_credit(contract, request, entry, item)

    def _add_next_period_credit(
        self,
        contract: ContractAggregate,
        request: ContractEditRequest,
        entry: CreditAddEntry,
        item: ScheduleItem,
    ) -> Credit | None:
        """Extend a credit into the next month when a recurring credit picks up there."""
        boundary = floor_to_hour(item.ending_before)
        matching = next(
            (
                rc
                for rc in contract.recurring_credits
                if rc.product.id == entry.product_id
                and floor_to_hour(rc.starting_at) == boundary
                and (
                    not entry.subscription_id
                    or not rc.subscription_id
                    or rc.subscription_id == entry.subscription_id
                )
                and (rc.ending_before is None or floor_to_hour(rc.ending_before) > boundary)
            ),
            None,
        )
        if matching is None:
            return None

        subscription_id = matching.subscription_id or entry.subscription_id
        tier_id = None
        if matching.subscription_id:
            target = contract.find_subscription(matching.subscription_id)
            if target is not None:
                tier_id = target.tier_id
            else:
                added = request.find_added_subscription(matching.subscription_id)
                tier_id = added.tier_id if added else None

        assert entry.access_schedule is not None
        next_start, next_end = month_period_after(item.ending_before)
        return upsert_period_credit(
            contract,
            entry.product_id,
            next_start,
            next_end,
            item.amount,
            entry.access_schedule.credit_type_id,
            subscription_id=subscription_id,
            tier_id=tier_id,
            custom_fields=entry.custom_fields,
        )

    def _add_overrides(self, contract: ContractAggregate, request: ContractEditRequest) -> None:
        for entry in request.add_overrides:
            contract.overrides.append(
                ProductOverride(
                    id=generate_id("override"),
                    product_id=entry.product_id,
                    starting_at=entry.starting_at,
                    entitled=entry.entitled,
                )
            )

    def _apply_threshold_configuration(
        self, contract: ContractAggregate, request: ContractEditRequest
    ) -> PaymentStatus | None:
        """Patch and/or replace the threshold configuration.

        Returns the payment-gate status to settle once the edit is persisted.
        """
        status: PaymentStatus | None = None

        update = request.update_prepaid_balance_threshold_configuration
        if update is not None:
            config = contract.prepaid_balance_threshold_configuration or (
                PrepaidBalanceThresholdConfiguration()
            )
            patch = update.model_dump(exclude_unset=True, exclude={"mock_payment_status"})
            for name in _REQUIRED_THRESHOLD_FIELDS:
                if patch.get(name, 0) is None:
                    del patch[name]
            config = PrepaidBalanceThresholdConfiguration.model_validate(
                {**config.model_dump(), **patch}
            )
            contract.prepaid_balance_threshold_configuration = config
            if update.mock_payment_status and config.commit is not None:
                status = _requested_payment_status(update.mock_payment_status)

        add = request.add_prepaid_balance_threshold_configuration
        if add is not None:
            contract.prepaid_balance_threshold_configuration = (
                PrepaidBalanceThresholdConfiguration.model_validate(
                    add.model_dump(exclude={"mock_payment_status"})
                )
            )
            if add.commit is not None:
                status = _requested_payment_status(add.mock_payment_status)

        return status

    def _settle_payment_gate(self, contract: ContractAggregate, status: PaymentStatus) -> None:
        config = contract.prepaid_balance_threshold_configuration
        if config is not None and config.commit is not None:
            if status == PaymentStatus.FAILED:
                amount = min(config.recharge_to_amount, config.threshold_amount)
            else:
                amount = config.recharge_to_amount
            self.balance_service.set_balance_for_product(
                contract.customer_id, config.commit.product_id, amount
            )
        self.webhooks.emit_payment_gate_status(contract.customer_id, contract.id, status)


def _requested_payment_status(value: str | None) -> PaymentStatus:
    return PaymentStatus.FAILED if value == PaymentStatus.FAILED.value else PaymentStatus.PAID
