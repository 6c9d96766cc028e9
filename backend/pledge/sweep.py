"""Settlement sweep: resolve every active bet against fresh provider data."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from pydantic import BaseModel, Field

from pledge.bets.exceptions import BetError, DataProviderError
from pledge.bets.lifecycle import BetLifecycleService
from pledge.bets.models import as_utc, utcnow
from pledge.config import Settings, get_settings
from pledge.services.finance import FinancialDataProvider, create_finance_client
from pledge.services.payments import create_stripe_client

logger = logging.getLogger(__name__)


class SweepResult(BaseModel):
    """Result of one settlement sweep."""

    inspected: int = 0
    won: int = 0
    lost: int = 0
    still_active: int = 0
    redelivered: int = 0
    errors: list[str] = Field(default_factory=list)


async def run_resolve_sweep(
    service: BetLifecycleService,
    provider: FinancialDataProvider,
    now: datetime | None = None,
    timeout_seconds: float = 10.0,
) -> SweepResult:
    """
    Resolve all active bets once.

    A failure on one bet (provider error, timeout, lost write race) is logged
    and recorded in ``errors``; the sweep continues with the next bet and the
    failed bet is picked up again on the next run.
    """
    now = as_utc(now) if now is not None else utcnow()
    result = SweepResult()

    for bet in service.list_bets(phase="active"):
        result.inspected += 1
        try:
            try:
                value = await asyncio.wait_for(
                    provider.get_current_value(
                        bet.owner_id,
                        bet.category,
                        since=bet.start_date,
                        as_of=now,
                    ),
                    timeout=timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise DataProviderError(
                    f"Provider timed out after {timeout_seconds}s", bet_id=bet.id
                ) from e

            resolved = await service.resolve(bet.id, now, value)

        except BetError as e:
            logger.warning(f"Sweep skipped bet {bet.id} ({e.kind}): {e.message}")
            result.errors.append(f"{bet.id}: {e.message}")
            continue

        if resolved.outcome == "success":
            result.won += 1
        elif resolved.outcome == "failure":
            result.lost += 1
        else:
            result.still_active += 1

    result.redelivered = await service.redeliver_settlements()

    logger.info(
        f"Sweep complete: {result.inspected} inspected, {result.won} won, "
        f"{result.lost} lost, {result.still_active} still active, "
        f"{result.redelivered} redelivered, {len(result.errors)} errors"
    )
    return result


async def run_sweep_once(settings: Settings | None = None) -> SweepResult:
    """Open the external clients, run one sweep, and close them."""
    settings = settings or get_settings()

    async with create_stripe_client(settings) as gateway:
        async with create_finance_client(settings) as provider:
            service = BetLifecycleService.from_settings(settings, gateway)
            return await run_resolve_sweep(
                service,
                provider,
                timeout_seconds=settings.data_provider.timeout_seconds,
            )


def resolve_sweep_job() -> None:
    """Scheduler job wrapper for the settlement sweep."""
    try:
        result = asyncio.run(run_sweep_once())
        logger.info(
            "Sweep job: %d won, %d lost, %d errors",
            result.won,
            result.lost,
            len(result.errors),
        )
    except Exception as exc:
        logger.error("Sweep job failed: %s", exc, exc_info=True)
