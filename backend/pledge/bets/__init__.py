"""Commitment-bet domain: models, progress math, status labels and ranking.

The lifecycle service lives in ``pledge.bets.lifecycle``; it depends on the
storage layer, which in turn depends on the models exported here.
"""

from .analytics import BetSummary, summarize
from .exceptions import (
    BetError,
    BetNotFoundError,
    DataProviderError,
    GatewayError,
    InvalidInputError,
    InvalidStateError,
    PaymentMismatchError,
)
from .leaderboard import LeaderboardRanker, flat_points, stake_points
from .models import (
    BET_CATEGORIES,
    BET_PHASES,
    Bet,
    CharitySelection,
    CompletionDetails,
    LeaderboardEntry,
    PaymentIntentRef,
    ProgressUpdate,
    SettlementEvent,
)
from .progress import (
    days_remaining,
    is_on_track,
    progress_percent,
    required_daily_progress,
)
from .status import BetStatusMachine, BetStatusView

__all__ = [
    # Models
    "BET_CATEGORIES",
    "BET_PHASES",
    "Bet",
    "CharitySelection",
    "CompletionDetails",
    "LeaderboardEntry",
    "PaymentIntentRef",
    "ProgressUpdate",
    "SettlementEvent",
    # Exceptions
    "BetError",
    "BetNotFoundError",
    "DataProviderError",
    "GatewayError",
    "InvalidInputError",
    "InvalidStateError",
    "PaymentMismatchError",
    # Progress
    "days_remaining",
    "is_on_track",
    "progress_percent",
    "required_daily_progress",
    # Status
    "BetStatusMachine",
    "BetStatusView",
    # Leaderboard
    "LeaderboardRanker",
    "flat_points",
    "stake_points",
    # Analytics
    "BetSummary",
    "summarize",
]
