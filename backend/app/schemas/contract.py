"""Contract schemas: the V2 contract aggregate and contract creation/lookup."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.shared import UTCDateTime


class BillingFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


class ProductRef(BaseModel):
    id: str
    name: str

    @classmethod
    def for_product(cls, product_id: str) -> "ProductRef":
        return cls(id=product_id, name=f"Product {product_id}")


class SubscriptionConfig(BaseModel):
    subscription_id: str


class SubscriptionRate(BaseModel):
    product: ProductRef
    billing_frequency: BillingFrequency


class QuantityScheduleItem(BaseModel):
    quantity: int
    starting_at: UTCDateTime
    ending_before: UTCDateTime | None = None


class BillingPeriod(BaseModel):
    starting_at: UTCDateTime
    ending_before: UTCDateTime | None = None


class BillingPeriods(BaseModel):
    current: BillingPeriod | None = None
    next: BillingPeriod | None = None


class Subscription(BaseModel):
    id: str
    starting_at: UTCDateTime
    ending_before: UTCDateTime | None = None
    subscription_rate: SubscriptionRate
    quantity_schedule: list[QuantityScheduleItem] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    billing_periods: BillingPeriods | None = None

    @property
    def tier_id(self) -> str | None:
        return self.custom_fields.get("tier_id")

    @property
    def product_id(self) -> str:
        return self.subscription_rate.product.id

    def is_active_at(self, instant: datetime) -> bool:
        """Started at or before ``instant`` and not yet ended."""
        if self.starting_at > instant:
            return False
        return self.ending_before is None or self.ending_before > instant


class ScheduleItem(BaseModel):
    starting_at: UTCDateTime
    ending_before: UTCDateTime
    amount: float = 0


class AccessSchedule(BaseModel):
    credit_type_id: str = ""
    schedule_items: list[ScheduleItem] = Field(default_factory=list)


class Credit(BaseModel):
    id: str
    product: ProductRef
    access_schedule: AccessSchedule | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    archived_at: UTCDateTime | None = None
    subscription_config: SubscriptionConfig | None = None

    @property
    def subscription_id(self) -> str | None:
        return self.subscription_config.subscription_id if self.subscription_config else None

    @property
    def tier_id(self) -> str | None:
        return self.custom_fields.get("tier_id")

    @property
    def schedule_item(self) -> ScheduleItem | None:
        """The single schedule item a synthesized credit carries, if any."""
        if self.access_schedule and self.access_schedule.schedule_items:
            return self.access_schedule.schedule_items[0]
        return None


class RecurringCredit(BaseModel):
    id: str
    product: ProductRef
    starting_at: UTCDateTime
    ending_before: UTCDateTime | None = None
    subscription_config: SubscriptionConfig | None = None

    @property
    def subscription_id(self) -> str | None:
        return self.subscription_config.subscription_id if self.subscription_config else None


class ProductOverride(BaseModel):
    id: str
    product_id: str
    starting_at: UTCDateTime
    entitled: bool


class ThresholdCommit(BaseModel):
    product_id: str
    applicable_product_tags: list[str] = Field(default_factory=list)


class PrepaidBalanceThresholdConfiguration(BaseModel):
    is_enabled: bool = False
    threshold_amount: float = 0
    recharge_to_amount: float = 0
    payment_gate_config: dict[str, Any] | None = None
    commit: ThresholdCommit | None = None


class ContractAggregate(BaseModel):
    """The V2 view of a contract: everything the edit processor mutates."""

    id: str
    customer_id: str
    starting_at: UTCDateTime
    uniqueness_key: str | None = None
    subscriptions: list[Subscription] = Field(default_factory=list)
    credits: list[Credit] = Field(default_factory=list)
    recurring_credits: list[RecurringCredit] = Field(default_factory=list)
    overrides: list[ProductOverride] = Field(default_factory=list)
    prepaid_balance_threshold_configuration: PrepaidBalanceThresholdConfiguration | None = None

    def find_subscription(self, subscription_id: str | None) -> Subscription | None:
        if subscription_id is None:
            return None
        return next((s for s in self.subscriptions if s.id == subscription_id), None)


class ContractCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    customer_id: str = Field(..., min_length=1)
    starting_at: UTCDateTime
    rate_card_id: str = Field(..., min_length=1)
    uniqueness_key: str | None = Field(default=None, max_length=255)
    usage_statement_schedule: dict[str, Any] | None = None
    billing_provider_configuration: dict[str, Any] | None = None


class ContractGetRequest(BaseModel):
    contract_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)


class ContractIdData(BaseModel):
    id: str


class ContractIdResponse(BaseModel):
    data: ContractIdData


class ContractResponse(BaseModel):
    data: ContractAggregate


class ContractListResponse(BaseModel):
    data: list[ContractAggregate]
