"""Progress and time signals for a bet's tracked metric.

All functions are pure. Values are ``Decimal`` so that percentages computed
from money amounts compare exactly against the 100% settlement threshold.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal

from pledge.bets.exceptions import InvalidInputError

ON_TRACK_THRESHOLD_PCT = Decimal("75")
COMPLETE_PCT = Decimal("100")

_ONE_DAY = timedelta(days=1)


def progress_percent(current_value: Decimal, target_value: Decimal) -> Decimal:
    """Completion percentage, clamped to [0, 100]."""
    current_value = Decimal(current_value)
    target_value = Decimal(target_value)
    if target_value <= 0:
        raise InvalidInputError(f"target_value must be positive, got {target_value}")
    if current_value < 0:
        raise InvalidInputError(
            f"current_value must not be negative, got {current_value}"
        )
    return min(COMPLETE_PCT, COMPLETE_PCT * current_value / target_value)


def days_remaining(end_date: datetime, now: datetime) -> int:
    """Whole days left until ``end_date``, rounded up, never negative."""
    remaining = (end_date - now) / _ONE_DAY
    return max(0, math.ceil(remaining))


def is_on_track(
    percent: Decimal, threshold: Decimal = ON_TRACK_THRESHOLD_PCT
) -> bool:
    return Decimal(percent) >= threshold


def required_daily_progress(
    current_value: Decimal,
    target_value: Decimal,
    end_date: datetime,
    now: datetime,
) -> Decimal:
    """Amount per day still needed to reach the target by ``end_date``.

    Returns the whole remaining amount when no days are left, and zero once
    the target is met.
    """
    remaining = Decimal(target_value) - Decimal(current_value)
    if remaining <= 0:
        return Decimal("0")
    days = days_remaining(end_date, now)
    if days == 0:
        return remaining
    return remaining / days
