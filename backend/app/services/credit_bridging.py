"""Credit bridging for subscription swaps, cancellations and un-cancellations.

When a recurring credit is added for a subscription that only takes over in
the future, the customer is still served by the currently active
subscription until then. The resolver finds that subscription and
synthesizes credits covering the gap up to the recurring credit's start,
plus the first full month after it for the incoming subscription.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Any

from app.models.shared import generate_id
from app.schemas.contract import (
    AccessSchedule,
    ContractAggregate,
    Credit,
    ProductRef,
    RecurringCredit,
    ScheduleItem,
    Subscription,
    SubscriptionConfig,
)
from app.schemas.contract_edit import (
    ContractEditRequest,
    RecurringCreditAddEntry,
    SubscriptionAddEntry,
)
from app.services.contract_dates import floor_to_hour, floor_to_month, month_period_after
from app.services.recurring_credit_matcher import find_active_recurring_credit

logger = logging.getLogger(__name__)


def find_period_credit(
    contract: ContractAggregate,
    product_id: str,
    starting_at: datetime,
    ending_before: datetime,
    subscription_id: str | None,
    tier_id: str | None,
) -> Credit | None:
    """Find an unarchived credit for ``product_id`` covering exactly the given period.

    The credit must be bound to ``subscription_id`` or carry ``tier_id``.
    """
    for credit in contract.credits:
        if credit.archived_at is not None or credit.product.id != product_id:
            continue
        item = credit.schedule_item
        if item is None:
            continue
        if item.starting_at != starting_at or item.ending_before != ending_before:
            continue
        same_subscription = subscription_id is not None and credit.subscription_id == subscription_id
        same_tier = tier_id is not None and credit.tier_id == tier_id
        if same_subscription or same_tier:
            return credit
    return None


def _apply_credit_metadata(credit: Credit, subscription_id: str | None, tier_id: str | None) -> None:
    if tier_id:
        credit.custom_fields["tier_id"] = tier_id
    if subscription_id:
        credit.subscription_config = SubscriptionConfig(subscription_id=subscription_id)


def upsert_period_credit(
    contract: ContractAggregate,
    product_id: str,
    starting_at: datetime,
    ending_before: datetime,
    amount: float,
    credit_type_id: str,
    subscription_id: str | None,
    tier_id: str | None,
    custom_fields: dict[str, Any] | None = None,
) -> Credit:
    """Reuse a matching credit (refreshing its metadata) or append a new one.

    ``custom_fields`` only seeds a newly created credit.
    """
    credit = find_period_credit(
        contract, product_id, starting_at, ending_before, subscription_id, tier_id
    )
    if credit is None:
        credit = Credit(
            id=generate_id("credit"),
            product=ProductRef.for_product(product_id),
            access_schedule=AccessSchedule(
                credit_type_id=credit_type_id,
                schedule_items=[
                    ScheduleItem(starting_at=starting_at, ending_before=ending_before, amount=amount)
                ],
            ),
            custom_fields=dict(custom_fields or {}),
        )
        contract.credits.append(credit)
    _apply_credit_metadata(credit, subscription_id, tier_id)
    return credit


@dataclass
class BridgingContext:
    """Everything the match strategies need to know about one recurring credit."""

    contract: ContractAggregate
    edit: ContractEditRequest
    recurring: RecurringCreditAddEntry
    now: datetime
    ending_subscription_ids: set[str]

    @property
    def target_subscription_id(self) -> str | None:
        return self.recurring.subscription_id

    @cached_property
    def rc_start(self) -> datetime:
        return floor_to_hour(self.recurring.starting_at)

    @cached_property
    def new_subscription(self) -> SubscriptionAddEntry | None:
        """The subscription added in this edit that the recurring credit targets."""
        return self.edit.find_added_subscription(self.target_subscription_id)

    @property
    def new_subscription_tier_id(self) -> str | None:
        return self.new_subscription.tier_id if self.new_subscription else None

    @cached_property
    def target_tier_id(self) -> str | None:
        target = self.contract.find_subscription(self.target_subscription_id)
        if target is not None:
            return target.tier_id
        return self.new_subscription_tier_id

    def active_target(self) -> Subscription | None:
        return next(
            (
                s
                for s in self.contract.subscriptions
                if s.id == self.target_subscription_id and s.is_active_at(self.now)
            ),
            None,
        )

    def preferred_with_tier(self, tier_id: str) -> Subscription | None:
        """Active subscription in ``tier_id``, preferring one already being canceled."""
        candidates = [
            s
            for s in self.contract.subscriptions
            if s.tier_id == tier_id and s.is_active_at(self.now)
        ]
        if not candidates:
            return None
        return next((s for s in candidates if s.ending_before is not None), candidates[0])


MatchStrategy = Callable[[BridgingContext], Subscription | None]


def match_tier_over_target(ctx: BridgingContext) -> Subscription | None:
    """The target is active, but another active subscription shares the new tier."""
    target = ctx.active_target()
    tier_id = ctx.new_subscription_tier_id
    if target is None or not tier_id:
        return None
    preferred = ctx.preferred_with_tier(tier_id)
    if preferred is not None and preferred.id != target.id:
        return preferred
    return None


def match_target(ctx: BridgingContext) -> Subscription | None:
    return ctx.active_target()


def match_same_tier(ctx: BridgingContext) -> Subscription | None:
    tier_id = ctx.new_subscription_tier_id
    if not tier_id:
        return None
    return ctx.preferred_with_tier(tier_id)


def match_ending_subscription(ctx: BridgingContext) -> Subscription | None:
    return next(
        (
            s
            for s in ctx.contract.subscriptions
            if s.id in ctx.ending_subscription_ids and s.is_active_at(ctx.now)
        ),
        None,
    )


def match_same_product(ctx: BridgingContext) -> Subscription | None:
    if ctx.new_subscription is None:
        return None
    product_id = ctx.new_subscription.product_id
    return next(
        (
            s
            for s in ctx.contract.subscriptions
            if s.product_id == product_id and s.is_active_at(ctx.now)
        ),
        None,
    )


# Evaluated in order; the first strategy returning a subscription wins.
# Once the incoming tier is known it takes precedence over a literal id match.
MATCH_STRATEGIES: list[tuple[str, MatchStrategy]] = [
    ("tier_over_target", match_tier_over_target),
    ("target", match_target),
    ("same_tier", match_same_tier),
    ("ending_subscription", match_ending_subscription),
    ("same_product", match_same_product),
]


def resolve_matching_subscription(ctx: BridgingContext) -> tuple[str, Subscription] | None:
    """Find the currently active subscription that should receive bridge credits."""
    for name, strategy in MATCH_STRATEGIES:
        match = strategy(ctx)
        if match is not None:
            return name, match
    return None


@dataclass
class ProductContext:
    product_id: str
    credit_amount: float
    credit_type_id: str
    has_matching_add_credit: bool


@dataclass
class BridgeResult:
    strategy: str
    matching_subscription_id: str
    target_subscription_id: str
    period_start: datetime
    period_end: datetime
    credits: list[Credit] = field(default_factory=list)
    recurring_credits: list[RecurringCredit] = field(default_factory=list)


class CreditBridgingResolver:
    """Synthesizes bridge credits for recurring credits added in one edit."""

    def __init__(self, contract: ContractAggregate, edit: ContractEditRequest, now: datetime):
        self.contract = contract
        self.edit = edit
        self.now = now
        self.ending_subscription_ids = {u.subscription_id for u in edit.update_subscriptions}

    def bridge(self, recurring: RecurringCreditAddEntry) -> BridgeResult | None:
        """Bridge the gap before ``recurring`` starts, if this is a swap.

        Returns None (and leaves the contract untouched) whenever bridging does
        not apply: the recurring credit is unbound or not in the future, no
        active subscription matches, or there is no gap to cover.
        """
        ctx = BridgingContext(
            contract=self.contract,
            edit=self.edit,
            recurring=recurring,
            now=self.now,
            ending_subscription_ids=self.ending_subscription_ids,
        )
        target_id = ctx.target_subscription_id
        if target_id is None or ctx.rc_start <= self.now:
            return None

        resolved = resolve_matching_subscription(ctx)
        if resolved is None:
            logger.debug(
                "No active subscription to bridge product %s onto %s (tier %s)",
                recurring.product_id,
                target_id,
                ctx.new_subscription_tier_id,
            )
            return None
        strategy, matching = resolved

        if target_id not in self.ending_subscription_ids and matching.id == target_id:
            logger.debug(
                "Skipping bridge for product %s: %s is not being swapped",
                recurring.product_id,
                target_id,
            )
            return None

        period_start = floor_to_hour(max(self.contract.starting_at, floor_to_month(self.now)))
        period_end = floor_to_hour(floor_to_month(ctx.rc_start))
        if period_end <= period_start:
            return None
        next_start, next_end = month_period_after(period_end)

        current_tier = matching.tier_id or ctx.target_tier_id or ctx.new_subscription_tier_id
        next_tier = ctx.target_tier_id or ctx.new_subscription_tier_id or current_tier

        logger.debug(
            "Bridging %s -> %s via %s for [%s, %s)",
            matching.id,
            target_id,
            strategy,
            period_start.isoformat(),
            period_end.isoformat(),
        )

        result = BridgeResult(
            strategy=strategy,
            matching_subscription_id=matching.id,
            target_subscription_id=target_id,
            period_start=period_start,
            period_end=period_end,
        )
        for context in self._product_contexts(recurring, matching):
            active = find_active_recurring_credit(
                self.contract.recurring_credits,
                context.product_id,
                ctx.rc_start,
                target_id,
                ctx.rc_start,
            )
            if active is not None and context.has_matching_add_credit:
                continue
            if active is None:
                created = RecurringCredit(
                    id=generate_id("rc"),
                    product=ProductRef.for_product(context.product_id),
                    starting_at=ctx.rc_start,
                    subscription_config=SubscriptionConfig(subscription_id=target_id),
                )
                self.contract.recurring_credits.append(created)
                result.recurring_credits.append(created)

            result.credits.append(
                upsert_period_credit(
                    self.contract,
                    context.product_id,
                    period_start,
                    period_end,
                    context.credit_amount,
                    context.credit_type_id,
                    subscription_id=matching.id,
                    tier_id=current_tier,
                )
            )
            result.credits.append(
                upsert_period_credit(
                    self.contract,
                    context.product_id,
                    next_start,
                    next_end,
                    context.credit_amount,
                    context.credit_type_id,
                    subscription_id=target_id,
                    tier_id=next_tier,
                )
            )
        return result

    def _product_contexts(
        self, recurring: RecurringCreditAddEntry, matching: Subscription
    ) -> list[ProductContext]:
        """Products to bridge, each listed once, first source wins."""
        access_amount = recurring.access_amount
        contexts = [
            ProductContext(
                product_id=recurring.product_id,
                credit_amount=access_amount.unit_price if access_amount else 0,
                credit_type_id=access_amount.credit_type_id if access_amount else "",
                has_matching_add_credit=any(
                    c.product_id == recurring.product_id for c in self.edit.add_credits
                ),
            )
        ]
        seen = {recurring.product_id}

        for add_credit in self.edit.add_credits:
            if not add_credit.has_schedule_items or add_credit.product_id in seen:
                continue
            assert add_credit.access_schedule is not None
            contexts.append(
                ProductContext(
                    product_id=add_credit.product_id,
                    credit_amount=add_credit.access_schedule.schedule_items[0].amount,
                    credit_type_id=add_credit.access_schedule.credit_type_id,
                    has_matching_add_credit=True,
                )
            )
            seen.add(add_credit.product_id)

        for credit in self.contract.credits:
            if credit.archived_at is not None or credit.product.id in seen:
                continue
            same_subscription = credit.subscription_id == matching.id
            same_tier = matching.tier_id is not None and credit.tier_id == matching.tier_id
            item = credit.schedule_item
            if not (same_subscription or same_tier) or item is None:
                continue
            contexts.append(
                ProductContext(
                    product_id=credit.product.id,
                    credit_amount=item.amount,
                    credit_type_id=credit.access_schedule.credit_type_id
                    if credit.access_schedule
                    else "",
                    has_matching_add_credit=True,
                )
            )
            seen.add(credit.product.id)

        return contexts
