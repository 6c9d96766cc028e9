from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, Field

from pledge.bets.models import PaymentIntentRef

_CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


class PaymentIntent(BaseModel):
    id: str
    amount: int = 0
    currency: str = "usd"
    status: str = "requires_payment_method"
    client_secret: str | None = None
    description: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def amount_usd(self) -> Decimal:
        return from_cents(self.amount)

    def to_ref(self) -> PaymentIntentRef:
        return PaymentIntentRef(
            intent_id=self.id,
            amount=self.amount_usd,
            currency=self.currency,
            client_secret=self.client_secret,
            status=self.status,
        )

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> PaymentIntent:
        return cls(
            id=data.get("id", ""),
            amount=data.get("amount", 0),
            currency=data.get("currency", "usd"),
            status=data.get("status", "requires_payment_method"),
            client_secret=data.get("client_secret"),
            description=data.get("description"),
            metadata=dict(data.get("metadata") or {}),
        )
