"""Request schemas for incremental contract edits."""

from typing import Any

from pydantic import BaseModel, Field

from app.schemas.contract import (
    AccessSchedule,
    BillingFrequency,
    SubscriptionConfig,
    ThresholdCommit,
)
from app.schemas.shared import UTCDateTime


class SubscriptionUpdateEntry(BaseModel):
    subscription_id: str
    ending_before: UTCDateTime | None = None


class RecurringCreditUpdateEntry(BaseModel):
    recurring_credit_id: str
    ending_before: UTCDateTime | None = None


class CreditArchiveEntry(BaseModel):
    id: str


class SubscriptionRateInput(BaseModel):
    product_id: str
    billing_frequency: BillingFrequency = BillingFrequency.MONTHLY


class SubscriptionAddEntry(BaseModel):
    temporary_id: str | None = None
    starting_at: UTCDateTime
    subscription_rate: SubscriptionRateInput
    initial_quantity: int | None = Field(default=None, ge=1)
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def tier_id(self) -> str | None:
        return self.custom_fields.get("tier_id")

    @property
    def product_id(self) -> str:
        return self.subscription_rate.product_id


class AccessAmount(BaseModel):
    credit_type_id: str = ""
    unit_price: float = 0


class RecurringCreditAddEntry(BaseModel):
    product_id: str
    starting_at: UTCDateTime
    subscription_config: SubscriptionConfig | None = None
    access_amount: AccessAmount | None = None

    @property
    def subscription_id(self) -> str | None:
        return self.subscription_config.subscription_id if self.subscription_config else None


class CreditAddEntry(BaseModel):
    product_id: str
    access_schedule: AccessSchedule | None = None
    subscription_config: SubscriptionConfig | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def subscription_id(self) -> str | None:
        return self.subscription_config.subscription_id if self.subscription_config else None

    @property
    def has_schedule_items(self) -> bool:
        return bool(self.access_schedule and self.access_schedule.schedule_items)


class OverrideAddEntry(BaseModel):
    product_id: str
    starting_at: UTCDateTime
    entitled: bool


class ThresholdConfigurationUpdate(BaseModel):
    """Field-by-field patch; only fields present in the request are applied."""

    is_enabled: bool | None = None
    threshold_amount: float | None = None
    recharge_to_amount: float | None = None
    payment_gate_config: dict[str, Any] | None = None
    commit: ThresholdCommit | None = None
    mock_payment_status: str | None = None


class ThresholdConfigurationAdd(BaseModel):
    is_enabled: bool
    threshold_amount: float
    recharge_to_amount: float
    payment_gate_config: dict[str, Any] | None = None
    commit: ThresholdCommit | None = None
    mock_payment_status: str | None = None


class ContractEditRequest(BaseModel):
    contract_id: str | None = None
    customer_id: str = Field(..., min_length=1)
    uniqueness_key: str | None = None
    update_subscriptions: list[SubscriptionUpdateEntry] = Field(default_factory=list)
    update_recurring_credits: list[RecurringCreditUpdateEntry] = Field(default_factory=list)
    archive_credits: list[CreditArchiveEntry] = Field(default_factory=list)
    add_subscriptions: list[SubscriptionAddEntry] = Field(default_factory=list)
    add_recurring_credits: list[RecurringCreditAddEntry] = Field(default_factory=list)
    add_credits: list[CreditAddEntry] = Field(default_factory=list)
    add_overrides: list[OverrideAddEntry] = Field(default_factory=list)
    update_prepaid_balance_threshold_configuration: ThresholdConfigurationUpdate | None = None
    add_prepaid_balance_threshold_configuration: ThresholdConfigurationAdd | None = None

    def find_added_subscription(self, temporary_id: str | None) -> SubscriptionAddEntry | None:
        if temporary_id is None:
            return None
        return next((s for s in self.add_subscriptions if s.temporary_id == temporary_id), None)
