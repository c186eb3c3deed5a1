"""Tests for bridge credit synthesis during subscription swaps."""

from datetime import UTC, datetime
from typing import Any

from app.schemas.contract import (
    AccessSchedule,
    BillingFrequency,
    ContractAggregate,
    Credit,
    ProductRef,
    RecurringCredit,
    ScheduleItem,
    Subscription,
    SubscriptionConfig,
    SubscriptionRate,
)
from app.schemas.contract_edit import ContractEditRequest
from app.services.credit_bridging import (
    MATCH_STRATEGIES,
    BridgingContext,
    CreditBridgingResolver,
    match_ending_subscription,
    match_same_product,
    match_same_tier,
    match_target,
    match_tier_over_target,
    resolve_matching_subscription,
    upsert_period_credit,
)

JAN = datetime(2024, 1, 1, tzinfo=UTC)
FEB = datetime(2024, 2, 1, tzinfo=UTC)
MAR = datetime(2024, 3, 1, tzinfo=UTC)
APR = datetime(2024, 4, 1, tzinfo=UTC)
NOW = datetime(2024, 2, 10, 12, 30, tzinfo=UTC)


def _sub(
    sub_id: str,
    product_id: str = "p1",
    tier_id: str | None = None,
    starting_at: datetime = JAN,
    ending_before: datetime | None = None,
) -> Subscription:
    return Subscription(
        id=sub_id,
        starting_at=starting_at,
        ending_before=ending_before,
        subscription_rate=SubscriptionRate(
            product=ProductRef.for_product(product_id),
            billing_frequency=BillingFrequency.MONTHLY,
        ),
        custom_fields={"tier_id": tier_id} if tier_id else {},
    )


def _credit(
    credit_id: str,
    product_id: str,
    subscription_id: str | None,
    starting_at: datetime = JAN,
    ending_before: datetime = FEB,
    amount: float = 30,
    tier_id: str | None = None,
    archived_at: datetime | None = None,
) -> Credit:
    return Credit(
        id=credit_id,
        product=ProductRef.for_product(product_id),
        access_schedule=AccessSchedule(
            credit_type_id="usd",
            schedule_items=[
                ScheduleItem(starting_at=starting_at, ending_before=ending_before, amount=amount)
            ],
        ),
        custom_fields={"tier_id": tier_id} if tier_id else {},
        subscription_config=SubscriptionConfig(subscription_id=subscription_id)
        if subscription_id
        else None,
        archived_at=archived_at,
    )


def _contract(
    subscriptions: list[Subscription],
    credits: list[Credit] | None = None,
    recurring_credits: list[RecurringCredit] | None = None,
    starting_at: datetime = JAN,
) -> ContractAggregate:
    return ContractAggregate(
        id="contract_1",
        customer_id="cus_1",
        starting_at=starting_at,
        subscriptions=subscriptions,
        credits=credits or [],
        recurring_credits=recurring_credits or [],
    )


def _edit(**kwargs: Any) -> ContractEditRequest:
    return ContractEditRequest.model_validate(
        {"contract_id": "contract_1", "customer_id": "cus_1", **kwargs}
    )


def _added_sub(temporary_id: str, tier_id: str | None = None, starting_at: datetime = MAR, product_id: str = "p1") -> dict[str, Any]:
    return {
        "temporary_id": temporary_id,
        "starting_at": starting_at,
        "subscription_rate": {"product_id": product_id, "billing_frequency": "MONTHLY"},
        "custom_fields": {"tier_id": tier_id} if tier_id else {},
    }


def _recurring(subscription_id: str | None, product_id: str = "p1", starting_at: datetime = MAR) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "product_id": product_id,
        "starting_at": starting_at,
        "access_amount": {"credit_type_id": "usd", "unit_price": 100},
    }
    if subscription_id:
        entry["subscription_config"] = {"subscription_id": subscription_id}
    return entry


def _context(contract: ContractAggregate, edit: ContractEditRequest) -> BridgingContext:
    return BridgingContext(
        contract=contract,
        edit=edit,
        recurring=edit.add_recurring_credits[0],
        now=NOW,
        ending_subscription_ids={u.subscription_id for u in edit.update_subscriptions},
    )


def _swap_edit() -> ContractEditRequest:
    """sub_1 ends on March 1st and same-tier sub_2 takes over."""
    return _edit(
        update_subscriptions=[{"subscription_id": "sub_1", "ending_before": MAR}],
        add_subscriptions=[_added_sub("sub_2", tier_id="pro")],
        add_recurring_credits=[_recurring("sub_2")],
    )


def _swap_contract(**kwargs: Any) -> ContractAggregate:
    return _contract(
        [
            _sub("sub_1", tier_id="pro", ending_before=MAR),
            _sub("sub_2", tier_id="pro", starting_at=MAR),
        ],
        **kwargs,
    )


# ── Match strategies ───────────────────────────────────────────────


class TestMatchStrategies:
    def test_strategy_order(self):
        assert [name for name, _ in MATCH_STRATEGIES] == [
            "tier_over_target",
            "target",
            "same_tier",
            "ending_subscription",
            "same_product",
        ]

    def test_target_when_active(self):
        contract = _contract([_sub("sub_1")])
        ctx = _context(contract, _edit(add_recurring_credits=[_recurring("sub_1")]))
        assert match_target(ctx).id == "sub_1"

    def test_target_ignored_once_ended(self):
        contract = _contract([_sub("sub_1", ending_before=FEB)])
        ctx = _context(contract, _edit(add_recurring_credits=[_recurring("sub_1")]))
        assert match_target(ctx) is None

    def test_target_ignored_before_it_starts(self):
        contract = _contract([_sub("sub_1", starting_at=MAR)])
        ctx = _context(contract, _edit(add_recurring_credits=[_recurring("sub_1")]))
        assert match_target(ctx) is None

    def test_same_tier_prefers_subscription_being_canceled(self):
        contract = _contract(
            [
                _sub("sub_a", tier_id="pro"),
                _sub("sub_b", tier_id="pro", ending_before=MAR),
                _sub("sub_2", tier_id="pro", starting_at=MAR),
            ]
        )
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2", tier_id="pro")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert match_same_tier(_context(contract, edit)).id == "sub_b"

    def test_same_tier_falls_back_to_first_active(self):
        contract = _contract(
            [
                _sub("sub_other", tier_id="basic"),
                _sub("sub_a", tier_id="pro"),
                _sub("sub_2", tier_id="pro", starting_at=MAR),
            ]
        )
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2", tier_id="pro")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert match_same_tier(_context(contract, edit)).id == "sub_a"

    def test_same_tier_needs_a_tier(self):
        contract = _contract([_sub("sub_a"), _sub("sub_2", starting_at=MAR)])
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert match_same_tier(_context(contract, edit)) is None

    def test_tier_over_target_on_uncancel(self):
        # sub_2 already started, but sub_1 in the same tier is still winding down.
        contract = _contract(
            [
                _sub("sub_1", tier_id="pro", ending_before=MAR),
                _sub("sub_2", tier_id="pro", starting_at=JAN),
            ]
        )
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2", tier_id="pro", starting_at=JAN)],
            add_recurring_credits=[_recurring("sub_2")],
        )
        ctx = _context(contract, edit)
        assert match_tier_over_target(ctx).id == "sub_1"
        assert resolve_matching_subscription(ctx)[0] == "tier_over_target"

    def test_tier_over_target_not_applied_when_target_is_preferred(self):
        contract = _contract([_sub("sub_2", tier_id="pro", starting_at=JAN)])
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2", tier_id="pro", starting_at=JAN)],
            add_recurring_credits=[_recurring("sub_2")],
        )
        ctx = _context(contract, edit)
        assert match_tier_over_target(ctx) is None
        assert resolve_matching_subscription(ctx)[0] == "target"

    def test_ending_subscription(self):
        contract = _contract([_sub("sub_1", ending_before=MAR), _sub("sub_2", starting_at=MAR)])
        edit = _edit(
            update_subscriptions=[{"subscription_id": "sub_1", "ending_before": MAR}],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert match_ending_subscription(_context(contract, edit)).id == "sub_1"

    def test_same_product(self):
        contract = _contract(
            [
                _sub("sub_other", product_id="p9"),
                _sub("sub_old", product_id="p1"),
                _sub("sub_2", product_id="p1", starting_at=MAR),
            ]
        )
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        ctx = _context(contract, edit)
        assert match_same_product(ctx).id == "sub_old"
        assert resolve_matching_subscription(ctx)[0] == "same_product"

    def test_nothing_active(self):
        contract = _contract([_sub("sub_2", starting_at=MAR)])
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert resolve_matching_subscription(_context(contract, edit)) is None


# ── Resolver ───────────────────────────────────────────────────────


class TestCreditBridgingResolver:
    def test_swap_creates_current_and_next_period_credits(self):
        contract = _swap_contract()
        edit = _swap_edit()

        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        assert result is not None
        assert result.strategy == "same_tier"
        assert result.matching_subscription_id == "sub_1"
        assert (result.period_start, result.period_end) == (FEB, MAR)

        current, upcoming = contract.credits
        assert current.subscription_id == "sub_1"
        assert current.tier_id == "pro"
        assert (current.schedule_item.starting_at, current.schedule_item.ending_before) == (FEB, MAR)
        assert current.schedule_item.amount == 100
        assert current.access_schedule.credit_type_id == "usd"

        assert upcoming.subscription_id == "sub_2"
        assert upcoming.tier_id == "pro"
        assert (upcoming.schedule_item.starting_at, upcoming.schedule_item.ending_before) == (MAR, APR)

    def test_creates_missing_recurring_credit_for_target(self):
        contract = _swap_contract()
        edit = _swap_edit()

        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        assert len(result.recurring_credits) == 1
        rc = contract.recurring_credits[0]
        assert rc.product.id == "p1"
        assert rc.starting_at == MAR
        assert rc.subscription_id == "sub_2"

    def test_reuses_active_recurring_credit(self):
        existing = RecurringCredit(
            id="rc_existing",
            product=ProductRef.for_product("p1"),
            starting_at=MAR,
            subscription_config=SubscriptionConfig(subscription_id="sub_2"),
        )
        contract = _swap_contract(recurring_credits=[existing])
        edit = _swap_edit()

        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        assert result.recurring_credits == []
        assert [rc.id for rc in contract.recurring_credits] == ["rc_existing"]
        assert len(contract.credits) == 2

    def test_bridging_twice_reuses_credits(self):
        contract = _swap_contract()
        edit = _swap_edit()
        resolver = CreditBridgingResolver(contract, edit, NOW)

        resolver.bridge(edit.add_recurring_credits[0])
        first_ids = [c.id for c in contract.credits]
        resolver.bridge(edit.add_recurring_credits[0])

        assert [c.id for c in contract.credits] == first_ids
        assert len(contract.recurring_credits) == 1

    def test_skips_recurring_credit_starting_in_the_past(self):
        contract = _swap_contract()
        edit = _edit(
            update_subscriptions=[{"subscription_id": "sub_1", "ending_before": MAR}],
            add_subscriptions=[_added_sub("sub_2", tier_id="pro")],
            add_recurring_credits=[_recurring("sub_2", starting_at=FEB)],
        )
        assert CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0]) is None
        assert contract.credits == []

    def test_skips_unbound_recurring_credit(self):
        contract = _swap_contract()
        edit = _edit(add_recurring_credits=[_recurring(None)])
        assert CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0]) is None

    def test_skips_when_target_is_not_being_swapped(self):
        contract = _contract([_sub("sub_1")])
        edit = _edit(add_recurring_credits=[_recurring("sub_1")])
        assert CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0]) is None
        assert contract.credits == []
        assert contract.recurring_credits == []

    def test_cancellation_of_target_itself_is_bridged(self):
        contract = _contract([_sub("sub_1", tier_id="pro", ending_before=MAR)])
        edit = _edit(
            update_subscriptions=[{"subscription_id": "sub_1", "ending_before": MAR}],
            add_recurring_credits=[_recurring("sub_1")],
        )
        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])
        assert result.strategy == "target"
        assert {c.subscription_id for c in contract.credits} == {"sub_1"}

    def test_skips_when_there_is_no_gap(self):
        contract = _swap_contract(starting_at=datetime(2024, 3, 15, tzinfo=UTC))
        edit = _swap_edit()
        assert CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0]) is None
        assert contract.credits == []

    def test_skips_when_no_subscription_matches(self):
        contract = _contract([_sub("sub_2", starting_at=MAR)])
        edit = _edit(
            add_subscriptions=[_added_sub("sub_2")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        assert CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0]) is None

    def test_gap_starts_at_contract_start_within_current_month(self):
        contract = _swap_contract(starting_at=datetime(2024, 2, 5, 8, 20, tzinfo=UTC))
        edit = _swap_edit()
        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])
        assert result.period_start == datetime(2024, 2, 5, 8, tzinfo=UTC)

    def test_tier_falls_back_to_target_when_matching_has_none(self):
        contract = _contract(
            [
                _sub("sub_1", ending_before=MAR),
                _sub("sub_2", tier_id="gold", starting_at=MAR),
            ]
        )
        edit = _edit(
            update_subscriptions=[{"subscription_id": "sub_1", "ending_before": MAR}],
            add_subscriptions=[_added_sub("sub_2", tier_id="gold")],
            add_recurring_credits=[_recurring("sub_2")],
        )
        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])
        assert result.strategy == "ending_subscription"
        assert [c.tier_id for c in contract.credits] == ["gold", "gold"]

    def test_matching_add_credit_with_active_recurring_credit_is_not_bridged(self):
        existing = RecurringCredit(
            id="rc_existing",
            product=ProductRef.for_product("p1"),
            starting_at=MAR,
            subscription_config=SubscriptionConfig(subscription_id="sub_2"),
        )
        contract = _swap_contract(recurring_credits=[existing])
        edit = _swap_edit().model_copy(
            update={
                "add_credits": _edit(
                    add_credits=[
                        {
                            "product_id": "p1",
                            "access_schedule": {
                                "credit_type_id": "usd",
                                "schedule_items": [
                                    {"starting_at": FEB, "ending_before": MAR, "amount": 5}
                                ],
                            },
                        }
                    ]
                ).add_credits
            }
        )
        result = CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])
        assert result is not None
        assert result.credits == []
        assert contract.credits == []

    def test_bridges_products_of_existing_credits(self):
        credits = [
            _credit("credit_p2", "p2", "sub_1", amount=30),
            _credit("credit_p3", "p3", "sub_1", archived_at=JAN),
            _credit("credit_p4", "p4", "sub_unrelated"),
        ]
        contract = _swap_contract(credits=credits)
        edit = _swap_edit()

        CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        bridged = [c for c in contract.credits if c.id not in {"credit_p2", "credit_p3", "credit_p4"}]
        assert sorted({c.product.id for c in bridged}) == ["p1", "p2"]
        p2_amounts = {c.schedule_item.amount for c in bridged if c.product.id == "p2"}
        assert p2_amounts == {30}
        assert {rc.product.id for rc in contract.recurring_credits} == {"p1", "p2"}

    def test_bridges_products_of_added_credits(self):
        contract = _swap_contract()
        edit = _swap_edit().model_copy(
            update={
                "add_credits": _edit(
                    add_credits=[
                        {
                            "product_id": "p5",
                            "access_schedule": {
                                "credit_type_id": "eur",
                                "schedule_items": [
                                    {"starting_at": FEB, "ending_before": MAR, "amount": 12}
                                ],
                            },
                        }
                    ]
                ).add_credits
            }
        )
        CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        p5 = [c for c in contract.credits if c.product.id == "p5"]
        assert len(p5) == 2
        assert {c.schedule_item.amount for c in p5} == {12}
        assert {c.access_schedule.credit_type_id for c in p5} == {"eur"}

    def test_reuses_credit_matched_by_tier(self):
        existing = _credit(
            "credit_tiered", "p1", "sub_elsewhere", starting_at=FEB, ending_before=MAR, tier_id="pro"
        )
        contract = _swap_contract(credits=[existing])
        edit = _swap_edit()

        CreditBridgingResolver(contract, edit, NOW).bridge(edit.add_recurring_credits[0])

        assert len(contract.credits) == 2
        reused = contract.credits[0]
        assert reused.id == "credit_tiered"
        assert reused.subscription_id == "sub_1"


class TestUpsertPeriodCredit:
    def test_appends_when_missing(self):
        contract = _contract([])
        credit = upsert_period_credit(
            contract, "p1", FEB, MAR, 10, "usd", subscription_id="sub_1", tier_id=None,
            custom_fields={"source": "auto"},
        )
        assert contract.credits == [credit]
        assert credit.custom_fields == {"source": "auto"}

    def test_archived_credit_is_not_reused(self):
        archived = _credit("credit_old", "p1", "sub_1", starting_at=FEB, ending_before=MAR, archived_at=FEB)
        contract = _contract([], credits=[archived])
        credit = upsert_period_credit(contract, "p1", FEB, MAR, 10, "usd", "sub_1", None)
        assert credit.id != "credit_old"
        assert len(contract.credits) == 2
