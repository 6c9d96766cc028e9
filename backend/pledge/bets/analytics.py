"""Per-user betting overview."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from pydantic import BaseModel

from pledge.bets.models import Bet


class BetSummary(BaseModel):
    """Counts and money totals across a set of bets."""

    total: int = 0
    pending: int = 0
    active: int = 0
    won: int = 0
    lost: int = 0
    total_staked: Decimal = Decimal("0")
    total_refunded: Decimal = Decimal("0")
    total_donated: Decimal = Decimal("0")
    win_rate: Decimal = Decimal("0")


def summarize(bets: Iterable[Bet]) -> BetSummary:
    """
    Aggregate a user's bets.

    ``total_staked`` counts only collected stakes (active or settled bets).
    ``win_rate`` is won / settled as a percentage with one decimal place.
    """
    summary = BetSummary()

    for bet in bets:
        summary.total += 1
        if bet.phase in ("draft", "pending_payment"):
            summary.pending += 1
            continue

        summary.total_staked += bet.stake_amount
        if bet.phase == "active":
            summary.active += 1
        elif bet.outcome == "success":
            summary.won += 1
            summary.total_refunded += bet.stake_amount
        else:
            summary.lost += 1
            summary.total_donated += bet.stake_amount

    settled = summary.won + summary.lost
    if settled:
        summary.win_rate = (Decimal(100) * summary.won / settled).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )
    return summary
