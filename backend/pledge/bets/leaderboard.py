"""
Leaderboard ranking.

On-demand computation of player standings from settled bets. The ranker
keeps no state between calls; callers that want caching do it themselves.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Callable, Iterable

from pledge.bets.models import Bet, LeaderboardEntry
from pledge.config import LeaderboardConfig

PointsFunction = Callable[[Bet], Decimal]

DEFAULT_FLAT_POINTS = 100


def stake_points(multiplier: Decimal = Decimal("1")) -> PointsFunction:
    """Score each win proportionally to its stake."""
    multiplier = Decimal(multiplier)

    def points_for(bet: Bet) -> Decimal:
        return bet.stake_amount * multiplier

    return points_for


def flat_points(points: int = DEFAULT_FLAT_POINTS) -> PointsFunction:
    """Score every win the same."""
    value = Decimal(points)

    def points_for(bet: Bet) -> Decimal:
        return value

    return points_for


class LeaderboardRanker:
    """Builds ranked standings from settled, successful bets."""

    def __init__(self, points_for: PointsFunction | None = None):
        self.points_for = points_for or stake_points()

    @classmethod
    def from_config(cls, config: LeaderboardConfig) -> "LeaderboardRanker":
        """Build a ranker from a ``LeaderboardConfig``."""
        if config.scoring == "flat":
            return cls(flat_points(config.flat_points))
        return cls(stake_points(config.stake_multiplier))

    def rank(self, bets: Iterable[Bet]) -> list[LeaderboardEntry]:
        """
        Rank players by points desc, then wins desc, then player id asc.

        Only bets with phase ``settled`` and outcome ``success`` count.
        """
        points: dict[str, Decimal] = defaultdict(Decimal)
        wins: dict[str, int] = defaultdict(int)
        staked: dict[str, Decimal] = defaultdict(Decimal)

        for bet in bets:
            if bet.phase != "settled" or bet.outcome != "success":
                continue
            points[bet.owner_id] += self.points_for(bet)
            wins[bet.owner_id] += 1
            staked[bet.owner_id] += bet.stake_amount

        ordered = sorted(
            points,
            key=lambda player_id: (-points[player_id], -wins[player_id], player_id),
        )

        return [
            LeaderboardEntry(
                player_id=player_id,
                points=points[player_id],
                wins=wins[player_id],
                rank=rank,
                total_staked=staked[player_id],
            )
            for rank, player_id in enumerate(ordered, 1)
        ]
