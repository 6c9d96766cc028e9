"""Commitment-bet lifecycle: create -> pay -> activate -> settle."""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError

from pledge.bets.analytics import BetSummary, summarize
from pledge.bets.exceptions import (
    BetNotFoundError,
    GatewayError,
    InvalidInputError,
    InvalidStateError,
    PaymentMismatchError,
)
from pledge.bets.leaderboard import LeaderboardRanker
from pledge.bets.models import (
    BET_CATEGORIES,
    Bet,
    BetPhase,
    CharitySelection,
    CompletionDetails,
    LeaderboardEntry,
    PaymentIntentRef,
    ProgressUpdate,
    SettlementEvent,
    as_utc,
    utcnow,
)
from pledge.bets.progress import COMPLETE_PCT, progress_percent
from pledge.bets.status import BetStatusMachine, BetStatusView
from pledge.config import BettingConfig, LeaderboardConfig, Settings
from pledge.storage import (
    BetStore,
    ConcurrentModificationError,
    JsonlSettlementSink,
    SettlementEventSink,
)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class PaymentGateway(Protocol):
    """Issues payment intents for bet stakes."""

    async def create_intent(
        self,
        amount: Decimal,
        *,
        bet_id: str,
        description: str = "",
    ) -> PaymentIntentRef: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentRef: ...


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return result


class BetLifecycleService:
    """
    Owns the creation -> payment -> activation -> settlement protocol.

    The only component that changes a bet's phase or outcome. Operations on
    one bet are serialised by a per-bet lock, and every transition is
    committed with a single versioned store write, so a failed operation
    leaves the stored bet untouched.
    """

    def __init__(
        self,
        store: BetStore,
        gateway: PaymentGateway,
        sink: SettlementEventSink,
        betting: BettingConfig | None = None,
        leaderboard: LeaderboardConfig | None = None,
        gateway_timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.gateway = gateway
        self.sink = sink
        self.betting = betting or BettingConfig()
        self.gateway_timeout_seconds = gateway_timeout_seconds
        self.clock = clock
        self.status_machine = BetStatusMachine(self.betting.on_track_threshold_pct)
        self.ranker = LeaderboardRanker.from_config(leaderboard or LeaderboardConfig())
        # Entries vanish once no operation holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        gateway: PaymentGateway,
        store: BetStore | None = None,
        sink: SettlementEventSink | None = None,
    ) -> "BetLifecycleService":
        """Wire the service from application settings."""
        return cls(
            store=store or BetStore(settings.data_dir),
            gateway=gateway,
            sink=sink or JsonlSettlementSink(settings.data_dir),
            betting=settings.betting,
            leaderboard=settings.leaderboard,
            gateway_timeout_seconds=settings.payments.timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, bet_id: str) -> asyncio.Lock:
        lock = self._locks.get(bet_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[bet_id] = lock
        return lock

    async def _call_gateway(
        self, bet: Bet, call: Awaitable[PaymentIntentRef]
    ) -> PaymentIntentRef:
        try:
            return await asyncio.wait_for(call, timeout=self.gateway_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Payment gateway timed out for bet {bet.id}")
            raise GatewayError(
                f"Payment gateway timed out after {self.gateway_timeout_seconds}s",
                bet_id=bet.id,
            ) from e
        except GatewayError as e:
            logger.warning(f"Payment gateway failed for bet {bet.id}: {e}")
            e.bet_id = e.bet_id or bet.id
            raise

    def _load(self, bet_id: str, owner_id: str | None = None) -> Bet:
        bet = self.store.get(bet_id)
        if bet is None or (owner_id is not None and bet.owner_id != owner_id):
            raise BetNotFoundError(f"Bet {bet_id} not found", bet_id=bet_id)
        return bet

    def _commit(self, current: Bet, updated: Bet) -> Bet:
        try:
            return self.store.save(updated, expected_version=current.version)
        except ConcurrentModificationError as e:
            raise InvalidStateError(
                f"Bet {current.id} was modified concurrently; reload and retry",
                bet_id=current.id,
            ) from e

    def _dispatch_settlement(self, bet: Bet) -> Bet:
        """Publish the settlement event and stamp the bet's audit field.

        A sink failure leaves ``settlement_dispatched_at`` unset; the next
        ``resolve`` call or sweep publishes the event again under the same id.
        """
        event = SettlementEvent.for_bet(bet)
        try:
            self.sink.publish(event)
        except Exception as e:
            logger.error(
                f"Settlement event {event.id} not delivered, will retry: {e}",
                exc_info=True,
            )
            return bet

        return self._commit(bet, bet.evolve(settlement_dispatched_at=self.clock()))

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def create_draft(
        self,
        owner_id: str,
        title: str,
        description: str,
        category: str,
        target_value: Any,
        stake_amount: Any,
        duration_days: int,
        *,
        charity: CharitySelection | dict | None = None,
        now: datetime | None = None,
    ) -> Bet:
        """
        Create a bet in ``draft``. No external system is contacted.

        Raises:
            InvalidInputError: non-positive amounts, sub-cent stake, unknown
                category or a duration outside ``betting.allowed_durations``.
        """
        target = _to_decimal("target_value", target_value)
        stake = _to_decimal("stake_amount", stake_amount)

        if not owner_id:
            raise InvalidInputError("owner_id is required")
        if target <= 0:
            raise InvalidInputError(f"target_value must be positive, got {target}")
        if stake <= 0:
            raise InvalidInputError(f"stake_amount must be positive, got {stake}")
        if stake != stake.quantize(_CENT):
            raise InvalidInputError(f"stake_amount must be whole cents, got {stake}")
        if category not in BET_CATEGORIES:
            raise InvalidInputError(
                f"category must be one of {', '.join(BET_CATEGORIES)}, got {category!r}"
            )
        if (
            isinstance(duration_days, bool)
            or not isinstance(duration_days, int)
            or duration_days not in self.betting.allowed_durations
        ):
            raise InvalidInputError(
                f"duration_days must be one of {self.betting.allowed_durations}, "
                f"got {duration_days!r}"
            )

        start = as_utc(now) if now is not None else self.clock()
        try:
            bet = Bet(
                owner_id=owner_id,
                title=title,
                description=description,
                category=category,
                target_value=target,
                stake_amount=stake,
                duration_days=duration_days,
                start_date=start,
                end_date=start + timedelta(days=duration_days),
                charity=charity,
                created_at=start,
                updated_at=start,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(x) for x in first["loc"]) or "bet"
            raise InvalidInputError(f"{field}: {first['msg']}") from e

        stored = self.store.create(bet)
        logger.info(
            f"Created draft bet {stored.id}: '{stored.title}' "
            f"target={stored.target_value} stake=${stored.stake_amount} "
            f"({stored.duration_days}d)"
        )
        return stored

    async def request_payment(
        self, bet_id: str, *, owner_id: str | None = None
    ) -> PaymentIntentRef:
        """
        Obtain a payment intent for the stake and move the bet to
        ``pending_payment``.

        A bet already in ``pending_payment`` gets its existing intent back,
        client secret included, fetched from the gateway by id. No new intent
        is created.

        Raises:
            InvalidStateError: bet is ``active`` or ``settled``.
            GatewayError: gateway failed, timed out, or returned an intent for
                a different amount. The bet stays in its current phase.
        """
        async with self._lock(bet_id):
            bet = self._load(bet_id, owner_id)

            if bet.phase == "pending_payment":
                logger.info(
                    f"Bet {bet.id} already has payment intent {bet.payment_intent_id}"
                )
                ref = await self._call_gateway(
                    bet, self.gateway.retrieve_intent(bet.payment_intent_id)
                )
                if ref.intent_id != bet.payment_intent_id:
                    raise GatewayError(
                        f"Gateway returned intent {ref.intent_id!r}, "
                        f"expected {bet.payment_intent_id!r}",
                        bet_id=bet.id,
                    )
                return ref
            if bet.phase != "draft":
                raise InvalidStateError(
                    f"Cannot request payment for bet {bet.id} in phase {bet.phase}",
                    bet_id=bet.id,
                )

            ref = await self._call_gateway(
                bet,
                self.gateway.create_intent(
                    bet.stake_amount,
                    bet_id=bet.id,
                    description=f"Financial bet stake: {bet.title}",
                ),
            )

            if not ref.intent_id or ref.amount != bet.stake_amount:
                raise GatewayError(
                    f"Gateway returned intent {ref.intent_id!r} for {ref.amount}, "
                    f"expected {bet.stake_amount}",
                    bet_id=bet.id,
                )

            self._commit(
                bet,
                bet.evolve(phase="pending_payment", payment_intent_id=ref.intent_id),
            )
            logger.info(
                f"Bet {bet.id} pending payment: intent {ref.intent_id} "
                f"for ${ref.amount}"
            )
            return ref

    async def activate(
        self,
        bet_id: str,
        payment_intent_id: str,
        amount_paid: Any,
        *,
        owner_id: str | None = None,
    ) -> Bet:
        """
        Mark the stake collected and start the bet.

        Raises:
            InvalidStateError: bet is not ``pending_payment``.
            PaymentMismatchError: intent id or amount differs from the stored
                intent and stake. The bet stays ``pending_payment``.
        """
        paid = _to_decimal("amount_paid", amount_paid)

        async with self._lock(bet_id):
            bet = self._load(bet_id, owner_id)

            if bet.phase != "pending_payment":
                raise InvalidStateError(
                    f"Cannot activate bet {bet.id} in phase {bet.phase}",
                    bet_id=bet.id,
                )
            if payment_intent_id != bet.payment_intent_id:
                raise PaymentMismatchError(
                    f"Payment intent {payment_intent_id!r} does not match bet {bet.id}",
                    bet_id=bet.id,
                )
            if paid != bet.stake_amount:
                raise PaymentMismatchError(
                    f"Amount paid ${paid} does not match stake ${bet.stake_amount}",
                    bet_id=bet.id,
                )

            activated = self._commit(
                bet,
                bet.evolve(phase="active", amount_paid=paid, paid_at=self.clock()),
            )
            logger.info(f"Activated bet {bet.id} (stake ${paid} collected)")
            return activated

    async def resolve(self, bet_id: str, now: datetime, current_value: Any) -> Bet:
        """
        Apply the latest metric reading and settle the bet if it is decided.

        - target reached on or before ``end_date``: success (stake refunded)
        - ``end_date`` passed otherwise: failure (stake donated)
        - otherwise the bet stays active with the new value

        Readings lower than the stored value are ignored. On a settled bet
        this is a no-op apart from retrying an undelivered settlement event.

        Raises:
            InvalidStateError: bet has not been activated.
            InvalidInputError: ``current_value`` is negative or not a number.
        """
        now = as_utc(now)
        reading = _to_decimal("current_value", current_value)
        if reading < 0:
            raise InvalidInputError(
                f"current_value must not be negative, got {reading}", bet_id=bet_id
            )

        async with self._lock(bet_id):
            bet = self._load(bet_id)

            if bet.is_settled:
                if bet.settlement_dispatched_at is None:
                    return self._dispatch_settlement(bet)
                return bet
            if bet.phase != "active":
                raise InvalidStateError(
                    f"Cannot resolve bet {bet.id} in phase {bet.phase}",
                    bet_id=bet.id,
                )

            if reading < bet.current_value:
                logger.warning(
                    f"Ignoring lower reading for bet {bet.id}: "
                    f"{reading} < {bet.current_value}"
                )
            value = max(reading, bet.current_value)

            changes: dict[str, Any] = {}
            if value != bet.current_value:
                changes["current_value"] = value
                changes["progress_updates"] = [
                    *bet.progress_updates,
                    ProgressUpdate(value=value, recorded_at=now, source="automatic"),
                ]

            percent = progress_percent(value, bet.target_value)
            if percent >= COMPLETE_PCT and now <= bet.end_date:
                outcome = "success"
            elif now > bet.end_date:
                outcome = "failure"
            else:
                outcome = None

            if outcome is not None:
                changes.update(
                    phase="settled",
                    outcome=outcome,
                    completion=CompletionDetails(
                        completed_at=now,
                        final_value=value,
                        success_percentage=(
                            COMPLETE_PCT * value / bet.target_value
                        ).quantize(_CENT),
                    ),
                )

            if not changes:
                return bet

            resolved = self._commit(bet, bet.evolve(**changes))

            if outcome is None:
                logger.info(
                    f"Bet {bet.id} progress {value}/{bet.target_value} "
                    f"({percent:.1f}%)"
                )
                return resolved

            logger.info(
                f"Settled bet {bet.id}: {outcome.upper()} "
                f"({value}/{bet.target_value}, stake ${bet.stake_amount} "
                f"{'refunded' if outcome == 'success' else 'donated'})"
            )
            return self._dispatch_settlement(resolved)

    async def abandon(self, bet_id: str, *, owner_id: str | None = None) -> None:
        """
        Delete a bet that was never paid for.

        Raises:
            InvalidStateError: bet has left ``draft``.
        """
        async with self._lock(bet_id):
            bet = self._load(bet_id, owner_id)
            if bet.phase != "draft":
                raise InvalidStateError(
                    f"Cannot abandon bet {bet.id} in phase {bet.phase}; "
                    "only unpaid drafts can be deleted",
                    bet_id=bet.id,
                )
            try:
                self.store.delete(bet.id, expected_version=bet.version)
            except ConcurrentModificationError as e:
                raise InvalidStateError(
                    f"Bet {bet.id} was modified concurrently; reload and retry",
                    bet_id=bet.id,
                ) from e

        logger.info(f"Abandoned draft bet {bet_id}")

    async def redeliver_settlements(self) -> int:
        """Publish settlement events that previously failed to deliver."""
        delivered = 0
        for bet in self.store.list_bets(phase="settled"):
            if bet.settlement_dispatched_at is not None:
                continue
            async with self._lock(bet.id):
                current = self._load(bet.id)
                if current.settlement_dispatched_at is not None:
                    continue
                if self._dispatch_settlement(current).settlement_dispatched_at:
                    delivered += 1
        return delivered

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_bet(self, bet_id: str, *, owner_id: str | None = None) -> Bet:
        return self._load(bet_id, owner_id)

    def list_bets(
        self, owner_id: str | None = None, phase: BetPhase | None = None
    ) -> list[Bet]:
        return self.store.list_bets(owner_id=owner_id, phase=phase)

    def describe(self, bet: Bet, now: datetime | None = None) -> BetStatusView:
        return self.status_machine.describe(bet, as_utc(now) if now else self.clock())

    def leaderboard(self) -> list[LeaderboardEntry]:
        return self.ranker.rank(self.store.list_bets(phase="settled"))

    def summary(self, owner_id: str) -> BetSummary:
        return summarize(self.store.list_bets(owner_id=owner_id))
