from pledge.bets.exceptions import GatewayError


class StripeAPIError(GatewayError):
    """Base exception for Stripe API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, status_code=status_code)


class StripeAuthError(StripeAPIError):
    """Authentication failed."""

    pass


class StripeRateLimitError(StripeAPIError):
    """Rate limit exceeded."""

    pass


class StripeInvalidRequestError(StripeAPIError):
    """Request rejected by Stripe (bad parameters, unknown object)."""

    pass
