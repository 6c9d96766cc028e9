"""Tests for the Stripe payment intents client (paper mode and a patched SDK)."""

import asyncio
from decimal import Decimal

import pytest
import stripe

from pledge.bets.exceptions import GatewayError
from pledge.config import Settings
from pledge.services.payments import (
    StripeAPIError,
    StripeAuthError,
    StripeClient,
    StripeConfig,
    StripeInvalidRequestError,
    StripeRateLimitError,
    create_stripe_client,
)

LIVE_CONFIG = StripeConfig(paper_mode=False, max_retries=0)


def intent_object(**overrides) -> stripe.PaymentIntent:
    data = {
        "id": "pi_123",
        "object": "payment_intent",
        "amount": 5000,
        "currency": "usd",
        "status": "requires_payment_method",
        "client_secret": "pi_123_secret_abc",
        "metadata": {"bet_id": "bet_abc"},
    }
    data.update(overrides)
    return stripe.PaymentIntent.construct_from(data, "sk_test_123")


def test_paper_mode_creates_intent_without_network() -> None:
    client = StripeClient(StripeConfig(paper_mode=True))

    async def run() -> None:
        async with client:
            ref = await client.create_intent(Decimal("50"), bet_id="bet_abc")
            again = await client.create_intent(Decimal("50"), bet_id="bet_abc")

            assert ref.intent_id.startswith("pi_paper_")
            assert ref.amount == Decimal("50.00")
            assert again.intent_id == ref.intent_id

            fetched = await client.retrieve_intent(ref.intent_id)
            assert fetched.amount == Decimal("50.00")
            assert fetched.client_secret == ref.client_secret

            with pytest.raises(StripeInvalidRequestError):
                await client.retrieve_intent("pi_unknown")

    asyncio.run(run())


def test_live_create_intent_passes_idempotency_key(monkeypatch) -> None:
    seen: list[dict] = []

    async def fake_create(**params):
        seen.append(params)
        return intent_object()

    monkeypatch.setattr(stripe.PaymentIntent, "create_async", fake_create)
    client = StripeClient(LIVE_CONFIG, secret_key="sk_test_123")

    async def run() -> None:
        async with client:
            ref = await client.create_intent(Decimal("50.00"), bet_id="bet_abc")

        assert ref.intent_id == "pi_123"
        assert ref.amount == Decimal("50.00")
        assert ref.client_secret == "pi_123_secret_abc"

    asyncio.run(run())

    params = seen[0]
    assert params["api_key"] == "sk_test_123"
    assert params["idempotency_key"] == "stake-bet_abc"
    assert params["amount"] == 5000
    assert params["currency"] == "usd"
    assert params["metadata"] == {"type": "bet_stake", "bet_id": "bet_abc"}


def test_live_retrieve_intent_returns_client_secret(monkeypatch) -> None:
    seen: list[str] = []

    async def fake_retrieve(intent_id, **params):
        seen.append(intent_id)
        return intent_object(status="processing")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve_async", fake_retrieve)
    client = StripeClient(LIVE_CONFIG, secret_key="sk_test_123")

    async def run() -> None:
        async with client:
            ref = await client.retrieve_intent("pi_123")

        assert ref.client_secret == "pi_123_secret_abc"
        assert ref.status == "processing"

    asyncio.run(run())
    assert seen == ["pi_123"]


@pytest.mark.parametrize(
    "error, expected",
    [
        (stripe.AuthenticationError("Invalid API Key provided", http_status=401), StripeAuthError),
        (stripe.RateLimitError("Too many requests", http_status=429), StripeRateLimitError),
        (
            stripe.InvalidRequestError("Amount must be at least 50 cents", "amount", http_status=400),
            StripeInvalidRequestError,
        ),
        (stripe.APIConnectionError("connection refused"), StripeAPIError),
    ],
)
def test_sdk_errors_become_gateway_errors(monkeypatch, error, expected) -> None:
    async def fake_create(**params):
        raise error

    monkeypatch.setattr(stripe.PaymentIntent, "create_async", fake_create)
    client = StripeClient(LIVE_CONFIG, secret_key="sk_test_123")

    async def run() -> None:
        async with client:
            with pytest.raises(expected) as exc_info:
                await client.create_payment_intent(5000)
        assert isinstance(exc_info.value, GatewayError)
        assert exc_info.value.kind == "gateway_error"
        assert exc_info.value.recoverable

    asyncio.run(run())


def test_live_mode_without_key_fails_before_calling_stripe(monkeypatch) -> None:
    async def fake_create(**params):
        raise AssertionError("Stripe must not be called without a key")

    monkeypatch.setattr(stripe.PaymentIntent, "create_async", fake_create)
    client = StripeClient(LIVE_CONFIG)

    async def run() -> None:
        async with client:
            with pytest.raises(StripeAuthError):
                await client.create_payment_intent(5000)

    asyncio.run(run())


def test_factory_forces_paper_mode_from_settings(tmp_path) -> None:
    settings = Settings(
        data_dir=tmp_path,
        stripe_secret_key="sk_live_should_not_be_used",
        _env_file=None,
    )

    client = create_stripe_client(settings)

    assert settings.paper_mode
    assert client.secret_key == ""
