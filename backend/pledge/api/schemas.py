"""Request and response bodies for the bets API."""

from decimal import Decimal

from pydantic import BaseModel

from pledge.bets.models import Bet, CharitySelection
from pledge.bets.status import BetStatusView


class CreateBetRequest(BaseModel):
    title: str
    description: str = ""
    category: str
    target_value: Decimal
    stake_amount: Decimal
    duration_days: int
    charity: CharitySelection | None = None


class ActivateBetRequest(BaseModel):
    payment_intent_id: str
    amount_paid: Decimal


class BetResponse(BaseModel):
    """A stored bet together with its derived status."""

    bet: Bet
    status: BetStatusView


class ErrorResponse(BaseModel):
    error: str
    message: str
