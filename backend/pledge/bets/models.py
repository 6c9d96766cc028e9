"""Pydantic models for commitment bets and the data derived from them."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, get_args
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

BetCategory = Literal[
    "savings", "debt", "investment", "purchase", "spending_limit", "habit_change"
]
BetPhase = Literal["draft", "pending_payment", "active", "settled"]
BetOutcome = Literal["none", "success", "failure"]
ProgressSource = Literal["manual", "automatic", "transaction_sync"]
SettlementDisposition = Literal["refund", "donate"]

BET_CATEGORIES: tuple[str, ...] = get_args(BetCategory)
BET_PHASES: tuple[str, ...] = get_args(BetPhase)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_bet_id() -> str:
    """Generate unique bet ID with bet_ prefix."""
    return f"bet_{uuid4().hex[:12]}"


def as_utc(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# ============================================================================
# Bet
# ============================================================================


class CharitySelection(BaseModel):
    """Recipient of a forfeited stake."""

    name: str
    ein: str = ""
    description: str = ""


class ProgressUpdate(BaseModel):
    """One recorded reading of a bet's tracked metric."""

    value: Decimal = Field(ge=0)
    recorded_at: datetime
    source: ProgressSource = "automatic"
    note: str = ""

    @field_validator("recorded_at", mode="after")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class CompletionDetails(BaseModel):
    """Snapshot taken when a bet settles."""

    completed_at: datetime
    final_value: Decimal
    success_percentage: Decimal

    @field_validator("completed_at", mode="after")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class Bet(BaseModel):
    """A stake against reaching a financial target before a deadline."""

    id: str = Field(default_factory=generate_bet_id)
    owner_id: str = Field(min_length=1)

    title: str = Field(min_length=1)
    description: str = ""
    category: BetCategory

    target_value: Decimal = Field(gt=0)
    current_value: Decimal = Field(default=Decimal("0"), ge=0)
    stake_amount: Decimal = Field(gt=0)

    duration_days: int = Field(gt=0)
    start_date: datetime
    end_date: datetime

    phase: BetPhase = "draft"
    outcome: BetOutcome = "none"

    # Payment
    payment_intent_id: str | None = None
    amount_paid: Decimal | None = None
    paid_at: datetime | None = None

    charity: CharitySelection | None = None
    progress_updates: list[ProgressUpdate] = Field(default_factory=list)
    completion: CompletionDetails | None = None

    # Audit
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    settlement_dispatched_at: datetime | None = None
    version: int = 0

    @field_validator(
        "start_date",
        "end_date",
        "paid_at",
        "created_at",
        "updated_at",
        "settlement_dispatched_at",
        mode="after",
    )
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Store every timestamp as timezone-aware UTC."""
        return as_utc(v)

    @model_validator(mode="after")
    def check_lifecycle_invariants(self) -> Bet:
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if (self.outcome != "none") != (self.phase == "settled"):
            raise ValueError(
                f"outcome '{self.outcome}' is inconsistent with phase '{self.phase}'"
            )
        if (self.payment_intent_id is not None) != (self.phase != "draft"):
            raise ValueError(
                f"payment_intent_id must be set exactly when phase is past draft "
                f"(phase={self.phase})"
            )
        return self

    @property
    def is_settled(self) -> bool:
        return self.phase == "settled"

    @property
    def stake_collected(self) -> bool:
        """True once activation confirmed the stake payment."""
        return self.phase in ("active", "settled")

    def evolve(self, **changes: Any) -> Bet:
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return Bet.model_validate(data)


# ============================================================================
# Payment and settlement
# ============================================================================


class PaymentIntentRef(BaseModel):
    """Reference to a payment authorization held by the gateway."""

    intent_id: str
    amount: Decimal
    currency: str = "usd"
    client_secret: str | None = None
    status: str = "requires_payment_method"


class SettlementEvent(BaseModel):
    """Instruction for the downstream payout step after a bet settles."""

    id: str
    bet_id: str
    owner_id: str
    outcome: Literal["success", "failure"]
    stake_amount: Decimal
    disposition: SettlementDisposition
    charity: CharitySelection | None = None
    payment_intent_id: str | None = None
    settled_at: datetime

    @classmethod
    def for_bet(cls, bet: Bet) -> SettlementEvent:
        """Build the event for a settled bet. The id is stable per bet."""
        if not bet.is_settled or bet.completion is None:
            raise ValueError(f"Bet {bet.id} is not settled")
        return cls(
            id=f"stl_{bet.id}",
            bet_id=bet.id,
            owner_id=bet.owner_id,
            outcome=bet.outcome,
            stake_amount=bet.stake_amount,
            disposition="refund" if bet.outcome == "success" else "donate",
            charity=bet.charity if bet.outcome == "failure" else None,
            payment_intent_id=bet.payment_intent_id,
            settled_at=bet.completion.completed_at,
        )


# ============================================================================
# Leaderboard
# ============================================================================


class LeaderboardEntry(BaseModel):
    """One player's standing, derived from their successful bets."""

    player_id: str
    points: Decimal
    wins: int
    rank: int = 0
    total_staked: Decimal = Decimal("0")
