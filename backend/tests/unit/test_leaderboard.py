"""Unit tests for leaderboard ranking."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pledge.bets.leaderboard import LeaderboardRanker, flat_points
from pledge.bets.models import Bet, CompletionDetails
from pledge.config import LeaderboardConfig

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_bet(owner_id: str, stake: str, phase: str = "settled", outcome: str = "success") -> Bet:
    settled = phase == "settled"
    return Bet(
        owner_id=owner_id,
        title="Goal",
        category="savings",
        target_value=Decimal("100"),
        current_value=Decimal("100") if outcome == "success" else Decimal("10"),
        stake_amount=Decimal(stake),
        duration_days=7,
        start_date=START,
        end_date=START + timedelta(days=7),
        phase=phase,
        outcome=outcome if settled else "none",
        payment_intent_id=None if phase == "draft" else "pi_1",
        completion=(
            CompletionDetails(
                completed_at=START + timedelta(days=3),
                final_value=Decimal("100"),
                success_percentage=Decimal("100"),
            )
            if settled
            else None
        ),
    )


def test_higher_total_stake_ranks_first() -> None:
    bets = [
        make_bet("A", "50"),
        make_bet("A", "50"),
        make_bet("B", "200"),
    ]

    entries = LeaderboardRanker().rank(bets)

    assert [(e.player_id, e.points, e.wins, e.rank) for e in entries] == [
        ("B", Decimal("200"), 1, 1),
        ("A", Decimal("100"), 2, 2),
    ]


def test_only_successful_settled_bets_count() -> None:
    bets = [
        make_bet("A", "50"),
        make_bet("B", "500", outcome="failure"),
        make_bet("C", "500", phase="active"),
        make_bet("D", "500", phase="draft"),
    ]

    entries = LeaderboardRanker().rank(bets)

    assert [e.player_id for e in entries] == ["A"]


def test_ties_break_on_wins_then_player_id() -> None:
    bets = [
        make_bet("zoe", "100"),
        make_bet("amy", "100"),
        make_bet("bob", "50"),
        make_bet("bob", "50"),
    ]

    entries = LeaderboardRanker().rank(bets)

    assert [e.player_id for e in entries] == ["bob", "amy", "zoe"]
    assert [e.rank for e in entries] == [1, 2, 3]


def test_ranking_ignores_input_order() -> None:
    bets = [make_bet("A", "10"), make_bet("B", "10"), make_bet("C", "30")]
    ranker = LeaderboardRanker()

    assert ranker.rank(bets) == ranker.rank(list(reversed(bets)))


def test_flat_scoring() -> None:
    bets = [make_bet("A", "500"), make_bet("B", "5"), make_bet("B", "5")]

    entries = LeaderboardRanker(flat_points(100)).rank(bets)

    assert [(e.player_id, e.points) for e in entries] == [
        ("B", Decimal("200")),
        ("A", Decimal("100")),
    ]
    assert entries[0].total_staked == Decimal("10")


def test_from_config() -> None:
    ranker = LeaderboardRanker.from_config(
        LeaderboardConfig(scoring="stake", stake_multiplier=Decimal("2"))
    )
    entries = ranker.rank([make_bet("A", "25")])
    assert entries[0].points == Decimal("50")


def test_empty_input() -> None:
    assert LeaderboardRanker().rank([]) == []
