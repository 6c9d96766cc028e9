"""Unit tests for progress percentage and deadline math."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pledge.bets.exceptions import InvalidInputError
from pledge.bets.progress import (
    days_remaining,
    is_on_track,
    progress_percent,
    required_daily_progress,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_progress_percent_is_proportional() -> None:
    assert progress_percent(Decimal("250"), Decimal("1000")) == Decimal("25")
    assert progress_percent(Decimal("0"), Decimal("1000")) == Decimal("0")


def test_progress_percent_clamps_at_100() -> None:
    assert progress_percent(Decimal("1500"), Decimal("1000")) == Decimal("100")


def test_progress_percent_rejects_bad_inputs() -> None:
    with pytest.raises(InvalidInputError):
        progress_percent(Decimal("10"), Decimal("0"))
    with pytest.raises(InvalidInputError):
        progress_percent(Decimal("-1"), Decimal("100"))


def test_days_remaining_rounds_partial_days_up() -> None:
    assert days_remaining(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert days_remaining(NOW + timedelta(days=2), NOW) == 2


def test_days_remaining_is_zero_after_deadline() -> None:
    assert days_remaining(NOW - timedelta(days=4), NOW) == 0
    assert days_remaining(NOW, NOW) == 0


def test_is_on_track_threshold_is_inclusive() -> None:
    assert is_on_track(Decimal("75"))
    assert not is_on_track(Decimal("74.99"))
    assert is_on_track(Decimal("50"), threshold=Decimal("50"))


def test_required_daily_progress_spreads_remaining_amount() -> None:
    end = NOW + timedelta(days=10)
    assert required_daily_progress(Decimal("400"), Decimal("1000"), end, NOW) == Decimal("60")


def test_required_daily_progress_edges() -> None:
    end = NOW + timedelta(days=10)
    assert required_daily_progress(Decimal("1000"), Decimal("1000"), end, NOW) == 0
    past = NOW - timedelta(days=1)
    assert required_daily_progress(Decimal("400"), Decimal("1000"), past, NOW) == Decimal("600")


def test_progress_percent_never_decreases_as_value_grows() -> None:
    target = Decimal("700")
    readings = [Decimal(v) for v in range(0, 1000, 35)]
    percents = [progress_percent(v, target) for v in readings]

    assert percents == sorted(percents)
    assert all(Decimal("0") <= p <= Decimal("100") for p in percents)
