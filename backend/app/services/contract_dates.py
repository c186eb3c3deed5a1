"""Calendar arithmetic for contract periods.

All helpers work in UTC and are pure functions of their inputs.
"""

from datetime import UTC, datetime

from app.schemas.contract import BillingFrequency, BillingPeriod, BillingPeriods

PERIOD_MONTHS = {
    BillingFrequency.MONTHLY: 1,
    BillingFrequency.ANNUAL: 12,
}


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def floor_to_hour(dt: datetime) -> datetime:
    """Zero out minutes, seconds and microseconds."""
    return _as_utc(dt).replace(minute=0, second=0, microsecond=0)


def floor_to_month(dt: datetime) -> datetime:
    """First instant of the UTC month containing ``dt``."""
    return _as_utc(dt).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def add_months(dt: datetime, months: int) -> datetime:
    """Add (or, for negative ``months``, subtract) calendar months.

    The day of month is carried over unchanged rather than clamped, so
    callers must pass a day that exists in the target month. Every caller
    in this package passes a month boundary.
    """
    dt = _as_utc(dt)
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    return dt.replace(year=year, month=month)


def calculate_billing_periods(
    starting_at: datetime,
    frequency: BillingFrequency | str,
) -> BillingPeriods:
    """Derive the current and next billing periods of a subscription.

    The current period starts at the first instant of the subscription's
    start month; each period spans one month (MONTHLY) or twelve (ANNUAL).
    ``current.ending_before`` always equals ``next.starting_at``.
    """
    period_months = PERIOD_MONTHS[BillingFrequency(frequency)]

    current_month = floor_to_month(starting_at)
    current_start = floor_to_hour(current_month)
    current_end = floor_to_hour(add_months(current_month, period_months))

    next_end = floor_to_hour(add_months(floor_to_month(current_end), period_months))

    return BillingPeriods(
        current=BillingPeriod(starting_at=current_start, ending_before=current_end),
        next=BillingPeriod(starting_at=current_end, ending_before=next_end),
    )


def month_period_after(period_end: datetime) -> tuple[datetime, datetime]:
    """The one-month period that begins at the month containing ``period_end``."""
    start = floor_to_hour(floor_to_month(period_end))
    end = floor_to_hour(floor_to_month(add_months(start, 1)))
    return start, end
