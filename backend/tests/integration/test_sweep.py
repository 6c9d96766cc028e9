"""Tests for the settlement sweep and its scheduler registration."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pledge.config import SchedulerConfig, Settings
from pledge.scheduler import build_scheduler
from pledge.services.finance import FinanceAPIError
from pledge.sweep import run_resolve_sweep

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_sweep_settles_and_updates_bets(service, provider, sink, open_bet) -> None:
    async def run() -> None:
        winner = await open_bet(owner_id="alice")
        loser = await open_bet(owner_id="bob", duration_days=7)
        pending = await open_bet(owner_id="carol")
        provider.values = {
            "alice": Decimal("1000"),
            "bob": Decimal("100"),
            "carol": Decimal("300"),
        }

        result = await run_resolve_sweep(service, provider, now=START + timedelta(days=10))

        assert result.inspected == 3
        assert result.won == 1
        assert result.lost == 1
        assert result.still_active == 1
        assert result.errors == []

        assert service.get_bet(winner.id).outcome == "success"
        assert service.get_bet(loser.id).outcome == "failure"
        assert service.get_bet(pending.id).current_value == Decimal("300")
        assert {e.bet_id for e in sink.events} == {winner.id, loser.id}

    asyncio.run(run())


def test_sweep_continues_past_provider_errors(service, provider, open_bet) -> None:
    async def run() -> None:
        broken = await open_bet(owner_id="alice")
        healthy = await open_bet(owner_id="bob")
        provider.values = {
            "alice": FinanceAPIError("upstream unavailable", status_code=503),
            "bob": Decimal("1000"),
        }

        result = await run_resolve_sweep(service, provider, now=START + timedelta(days=2))

        assert result.won == 1
        assert len(result.errors) == 1
        assert broken.id in result.errors[0]
        assert service.get_bet(broken.id).phase == "active"
        assert service.get_bet(healthy.id).outcome == "success"

    asyncio.run(run())


def test_sweep_bounds_slow_provider(service, provider, open_bet) -> None:
    provider.delay = 1.0

    async def run() -> None:
        bet = await open_bet()
        provider.values = {"alice": Decimal("1000")}

        result = await run_resolve_sweep(
            service, provider, now=START + timedelta(days=2), timeout_seconds=0.05
        )

        assert result.inspected == 1
        assert len(result.errors) == 1
        assert service.get_bet(bet.id).phase == "active"

    asyncio.run(run())


def test_sweep_redelivers_failed_settlements(service, provider, sink, open_bet) -> None:
    async def run() -> None:
        bet = await open_bet()
        sink.fail = True
        await service.resolve(bet.id, START + timedelta(days=2), 1000)
        sink.fail = False

        result = await run_resolve_sweep(service, provider, now=START + timedelta(days=3))

        assert result.inspected == 0
        assert result.redelivered == 1
        assert [e.bet_id for e in sink.events] == [bet.id]

    asyncio.run(run())


def test_scheduler_registers_sweep_job(tmp_path) -> None:
    settings = Settings(
        data_dir=tmp_path,
        scheduler=SchedulerConfig(resolve_interval_minutes=15),
        _env_file=None,
    )

    scheduler = build_scheduler(settings)
    jobs = scheduler.get_jobs()

    assert [job.id for job in jobs] == ["resolve-sweep"]
    assert jobs[0].trigger.interval == timedelta(minutes=15)
