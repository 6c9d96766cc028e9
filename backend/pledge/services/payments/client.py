from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

import stripe

from pledge.bets.models import PaymentIntentRef
from pledge.config import Settings

from .config import StripeConfig
from .exceptions import (
    StripeAPIError,
    StripeAuthError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)
from .models import PaymentIntent, to_cents

logger = logging.getLogger(__name__)


def _translate_error(e: stripe.StripeError) -> StripeAPIError:
    message = e.user_message or str(e)
    if isinstance(e, stripe.AuthenticationError):
        return StripeAuthError(message, status_code=e.http_status)
    if isinstance(e, stripe.RateLimitError):
        return StripeRateLimitError(message, status_code=e.http_status)
    if isinstance(e, stripe.InvalidRequestError):
        return StripeInvalidRequestError(message, status_code=e.http_status)
    return StripeAPIError(message, status_code=e.http_status)


class StripeClient:
    """Payment intents through the Stripe SDK.

    Without a secret key in paper mode, intents are fabricated locally with a
    ``pi_paper_`` prefix and nothing leaves the process.
    """

    def __init__(
        self,
        config: StripeConfig | None = None,
        secret_key: str | None = None,
    ):
        self.config = config or StripeConfig()
        self.secret_key = secret_key or ""
        self._paper_intents: dict[str, PaymentIntent] = {}

        logger.info(
            f"Initialized StripeClient (paper_mode={self.config.paper_mode}, "
            f"auth={'enabled' if self.secret_key else 'disabled'})"
        )

    async def __aenter__(self) -> StripeClient:
        # The SDK retries connection errors, 409s and 429s with backoff.
        stripe.max_network_retries = self.config.max_retries
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        logger.info("Closed StripeClient")

    def _paper_enabled(self) -> bool:
        return self.config.paper_mode and not self.secret_key

    def _require_key(self) -> str:
        if not self.secret_key:
            raise StripeAuthError("Stripe secret key is not configured")
        return self.secret_key

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str | None = None,
        description: str = "",
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        currency = currency or self.config.currency
        metadata = metadata or {}

        if self._paper_enabled():
            if idempotency_key and idempotency_key in self._paper_intents:
                return self._paper_intents[idempotency_key]
            intent_id = f"pi_paper_{uuid4().hex[:16]}"
            intent = PaymentIntent(
                id=intent_id,
                amount=amount_cents,
                currency=currency,
                status="requires_payment_method",
                client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
                description=description,
                metadata=metadata,
            )
            self._paper_intents[idempotency_key or intent_id] = intent
            logger.info(f"Paper payment intent created: {intent_id} for {amount_cents}c")
            return intent

        api_key = self._require_key()
        try:
            data = await stripe.PaymentIntent.create_async(
                api_key=api_key,
                idempotency_key=idempotency_key,
                amount=amount_cents,
                currency=currency,
                description=description,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe rejected payment intent for {amount_cents}c: {e}")
            raise _translate_error(e) from e

        intent = PaymentIntent.from_api(data)
        logger.info(f"Payment intent created: {intent.id} for {amount_cents}c")
        return intent

    async def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        if self._paper_enabled():
            for intent in self._paper_intents.values():
                if intent.id == intent_id:
                    return intent
            raise StripeInvalidRequestError(
                f"No such payment_intent: '{intent_id}'", status_code=404
            )

        api_key = self._require_key()
        try:
            data = await stripe.PaymentIntent.retrieve_async(intent_id, api_key=api_key)
        except stripe.StripeError as e:
            logger.error(f"Failed to retrieve payment intent {intent_id}: {e}")
            raise _translate_error(e) from e
        return PaymentIntent.from_api(data)

    async def create_intent(
        self,
        amount: Decimal,
        *,
        bet_id: str,
        description: str = "",
    ) -> PaymentIntentRef:
        """Create an intent for a bet stake (payment gateway contract)."""
        intent = await self.create_payment_intent(
            to_cents(amount),
            description=description or f"Commitment bet stake: {bet_id}",
            metadata={"type": "bet_stake", "bet_id": bet_id},
            idempotency_key=f"stake-{bet_id}",
        )
        return intent.to_ref()

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentRef:
        """Fetch an existing intent, client secret included."""
        intent = await self.retrieve_payment_intent(intent_id)
        return intent.to_ref()


def create_stripe_client(settings: Settings) -> StripeClient:
    """Create a StripeClient configured from application settings."""
    config = StripeConfig(
        paper_mode=settings.paper_mode,
        currency=settings.payments.currency,
        max_retries=settings.payments.max_retries,
    )
    secret_key = "" if settings.paper_mode else settings.stripe_secret_key
    return StripeClient(config=config, secret_key=secret_key)
