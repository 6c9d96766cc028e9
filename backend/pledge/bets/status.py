"""User-facing status labels derived from a bet's stored phase and outcome."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from pledge.bets.models import Bet
from pledge.bets.progress import (
    ON_TRACK_THRESHOLD_PCT,
    days_remaining,
    is_on_track,
    progress_percent,
    required_daily_progress,
)

StatusLabel = Literal["pending", "active", "on_track", "won", "lost"]


class BetStatusView(BaseModel):
    """Presentation snapshot of a bet at a point in time."""

    label: StatusLabel
    progress_percent: Decimal
    days_remaining: int
    on_track: bool
    required_daily_progress: Decimal


class BetStatusMachine:
    """
    Maps (phase, outcome, progress) to a label.

    Labels are recomputed on every call and never stored, so they cannot
    drift from the persisted phase and outcome.
    """

    def __init__(self, on_track_threshold: Decimal = ON_TRACK_THRESHOLD_PCT):
        self.on_track_threshold = Decimal(on_track_threshold)

    def label(self, bet: Bet) -> StatusLabel:
        if bet.phase in ("draft", "pending_payment"):
            return "pending"
        if bet.phase == "settled":
            return "won" if bet.outcome == "success" else "lost"

        percent = progress_percent(bet.current_value, bet.target_value)
        if is_on_track(percent, self.on_track_threshold):
            return "on_track"
        return "active"

    def describe(self, bet: Bet, now: datetime) -> BetStatusView:
        percent = progress_percent(bet.current_value, bet.target_value)
        return BetStatusView(
            label=self.label(bet),
            progress_percent=percent,
            days_remaining=0 if bet.is_settled else days_remaining(bet.end_date, now),
            on_track=is_on_track(percent, self.on_track_threshold),
            required_daily_progress=(
                Decimal("0")
                if bet.is_settled
                else required_daily_progress(
                    bet.current_value, bet.target_value, bet.end_date, now
                )
            ),
        )
