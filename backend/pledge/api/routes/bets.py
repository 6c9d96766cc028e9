"""Bets API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from pledge.api.dependencies import get_owner_id, get_service
from pledge.api.schemas import ActivateBetRequest, BetResponse, CreateBetRequest
from pledge.bets.analytics import BetSummary
from pledge.bets.lifecycle import BetLifecycleService
from pledge.bets.models import Bet, BetPhase, LeaderboardEntry, PaymentIntentRef

router = APIRouter(prefix="/api/bets", tags=["Bets"])


def _to_response(service: BetLifecycleService, bet: Bet) -> BetResponse:
    return BetResponse(bet=bet, status=service.describe(bet))


@router.get("", response_model=list[BetResponse])
async def list_bets(
    phase: Optional[BetPhase] = None,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """List the caller's bets, newest first."""
    return [
        _to_response(service, bet)
        for bet in service.list_bets(owner_id=owner_id, phase=phase)
    ]


@router.post("", response_model=BetResponse, status_code=status.HTTP_201_CREATED)
async def create_bet(
    body: CreateBetRequest,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """Create a draft bet. Payment is requested separately."""
    bet = await service.create_draft(
        owner_id=owner_id,
        title=body.title,
        description=body.description,
        category=body.category,
        target_value=body.target_value,
        stake_amount=body.stake_amount,
        duration_days=body.duration_days,
        charity=body.charity,
    )
    return _to_response(service, bet)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(service: BetLifecycleService = Depends(get_service)):
    """Current standings across all players."""
    return service.leaderboard()


@router.get("/analytics/overview", response_model=BetSummary)
async def get_overview(
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """Counts and totals across the caller's bets."""
    return service.summary(owner_id)


@router.get("/{bet_id}", response_model=BetResponse)
async def get_bet(
    bet_id: str,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    return _to_response(service, service.get_bet(bet_id, owner_id=owner_id))


@router.delete("/{bet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_bet(
    bet_id: str,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """Delete an unpaid draft."""
    await service.abandon(bet_id, owner_id=owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{bet_id}/payment-intent", response_model=PaymentIntentRef)
async def request_payment(
    bet_id: str,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """Obtain the payment intent the client uses to pay the stake."""
    return await service.request_payment(bet_id, owner_id=owner_id)


@router.post("/{bet_id}/activate", response_model=BetResponse)
async def activate_bet(
    bet_id: str,
    body: ActivateBetRequest,
    owner_id: str = Depends(get_owner_id),
    service: BetLifecycleService = Depends(get_service),
):
    """Confirm the stake payment and start the bet."""
    bet = await service.activate(
        bet_id,
        body.payment_intent_id,
        body.amount_paid,
        owner_id=owner_id,
    )
    return _to_response(service, bet)
