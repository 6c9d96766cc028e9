from .client import StripeClient, create_stripe_client
from .config import StripeConfig
from .exceptions import (
    StripeAPIError,
    StripeAuthError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)
from .models import PaymentIntent, from_cents, to_cents

__all__ = [
    "StripeClient",
    "create_stripe_client",
    "StripeConfig",
    "StripeAPIError",
    "StripeAuthError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "PaymentIntent",
    "from_cents",
    "to_cents",
]
