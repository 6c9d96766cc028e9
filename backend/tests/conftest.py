"""Shared fixtures: a file-backed store plus in-memory gateway, sink and provider."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pledge.bets.exceptions import GatewayError
from pledge.bets.lifecycle import BetLifecycleService
from pledge.bets.models import PaymentIntentRef, SettlementEvent
from pledge.services.finance import FinanceAPIError
from pledge.storage import BetStore

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeGateway:
    """Payment gateway double. ``mode`` is ok, fail, hang or wrong_amount."""

    def __init__(self) -> None:
        self.mode = "ok"
        self.delay = 0.0
        self.calls: list[tuple[Decimal, str]] = []
        self.issued: dict[str, PaymentIntentRef] = {}
        self.retrievals: list[str] = []

    async def create_intent(
        self, amount: Decimal, *, bet_id: str, description: str = ""
    ) -> PaymentIntentRef:
        self.calls.append((amount, bet_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.mode == "fail":
            raise GatewayError("card network unavailable", status_code=503)
        if self.mode == "hang":
            await asyncio.sleep(5)
        if self.mode == "wrong_amount":
            amount = amount + Decimal("1")
        ref = PaymentIntentRef(
            intent_id=f"pi_test_{bet_id}",
            amount=amount,
            client_secret=f"pi_test_{bet_id}_secret",
        )
        self.issued[ref.intent_id] = ref
        return ref

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentRef:
        self.retrievals.append(intent_id)
        if self.mode == "fail":
            raise GatewayError("card network unavailable", status_code=503)
        if self.mode == "hang":
            await asyncio.sleep(5)
        if intent_id not in self.issued:
            raise GatewayError(f"No such payment_intent: '{intent_id}'", status_code=404)
        return self.issued[intent_id]


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[SettlementEvent] = []
        self.fail = False

    def publish(self, event: SettlementEvent) -> None:
        if self.fail:
            raise OSError("ledger volume is read-only")
        self.events.append(event)


class FakeProvider:
    """Financial-data provider double keyed by owner id."""

    def __init__(self) -> None:
        self.values: dict[str, Decimal | Exception] = {}
        self.delay = 0.0

    async def get_current_value(self, owner_id, category, *, since, as_of):
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self.values.get(owner_id)
        if value is None:
            raise FinanceAPIError(f"no data for {owner_id}", status_code=404)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def store(tmp_path) -> BetStore:
    return BetStore(tmp_path)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def service(store, gateway, sink) -> BetLifecycleService:
    return BetLifecycleService(
        store=store,
        gateway=gateway,
        sink=sink,
        gateway_timeout_seconds=0.2,
    )


@pytest.fixture
def open_bet(service):
    """Coroutine that creates, pays for and activates a bet."""

    async def _open_bet(
        owner_id: str = "alice",
        target_value: Decimal = Decimal("1000"),
        stake_amount: Decimal = Decimal("50"),
        duration_days: int = 30,
        now: datetime = START,
        charity: dict | None = None,
    ):
        bet = await service.create_draft(
            owner_id=owner_id,
            title="Emergency fund",
            description="Save for a rainy day",
            category="savings",
            target_value=target_value,
            stake_amount=stake_amount,
            duration_days=duration_days,
            charity=charity,
            now=now,
        )
        ref = await service.request_payment(bet.id)
        return await service.activate(bet.id, ref.intent_id, ref.amount)

    return _open_bet
