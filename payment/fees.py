"""
Platform fee tiers.

The fee is evaluated once, at checkout, from a point-in-time count of the
tipster's active subscribers and frozen into the checkout session.
"""

from typing import Iterable, Optional, Sequence, Tuple

from config import settings


def fee_percent(active_subscriber_count: int, tiers: Optional[Sequence[Tuple[int, int]]] = None) -> int:
    """
    Return the platform commission percent for a subscriber count.

    ``tiers`` is a list of ``(min_subscribers, percent)`` ordered by threshold,
    highest first; the first threshold the count reaches wins.
    """
    table: Iterable[Tuple[int, int]] = tiers if tiers is not None else settings.PLATFORM_FEE_TIERS
    last_percent = None
    for min_subscribers, percent in table:
        if active_subscriber_count >= min_subscribers:
            return percent
        last_percent = percent
    if last_percent is None:
        raise ValueError("Fee tier table is empty")
    return last_percent


def application_fee_amount(price: int, percent: int) -> int:
    """Fee in minor units for a one-time charge, rounded half up."""
    return (price * percent + 50) // 100
