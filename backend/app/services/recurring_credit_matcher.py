"""Decide whether a recurring credit already on file is "the same" as a candidate."""

from collections.abc import Iterable
from datetime import datetime

from app.schemas.contract import RecurringCredit
from app.services.contract_dates import floor_to_hour


def is_active_recurring_credit(
    existing: RecurringCredit,
    product_id: str,
    normalized_start: datetime,
    subscription_id: str | None,
    reference: datetime,
) -> bool:
    """Return True if ``existing`` matches the candidate and is still active.

    A match needs the same product, the same hour-floored start, and the same
    subscription binding (a bound and an unbound recurring credit never
    match). An ``ending_before`` at or before the hour-floored ``reference``
    means the recurring credit has ended and cannot match.
    """
    if existing.product.id != product_id:
        return False
    if floor_to_hour(existing.starting_at) != normalized_start:
        return False
    if existing.subscription_id != subscription_id:
        return False
    if existing.ending_before is not None:
        if floor_to_hour(existing.ending_before) <= floor_to_hour(reference):
            return False
    return True


def find_active_recurring_credit(
    recurring_credits: Iterable[RecurringCredit],
    product_id: str,
    normalized_start: datetime,
    subscription_id: str | None,
    reference: datetime,
) -> RecurringCredit | None:
    """First recurring credit in ``recurring_credits`` that is active for the candidate."""
    return next(
        (
            rc
            for rc in recurring_credits
            if is_active_recurring_credit(
                rc, product_id, normalized_start, subscription_id, reference
            )
        ),
        None,
    )
