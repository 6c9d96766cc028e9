"""Bet lifecycle exceptions.

Every error carries a stable ``kind`` so callers can choose between retrying
and showing a message without parsing exception text.
"""


class BetError(Exception):
    """Base exception for bet lifecycle errors."""

    kind = "bet_error"
    recoverable = False

    def __init__(self, message: str, bet_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.bet_id = bet_id


class InvalidInputError(BetError):
    """Malformed arguments or non-positive amounts."""

    kind = "invalid_input"


class BetNotFoundError(BetError):
    """Bet does not exist or is not visible to the caller."""

    kind = "not_found"


class InvalidStateError(BetError):
    """Operation is not legal for the bet's current phase."""

    kind = "invalid_state"


class PaymentMismatchError(BetError):
    """Payment intent or amount does not match the bet at activation."""

    kind = "payment_mismatch"


class GatewayError(BetError):
    """Payment gateway call failed. Safe to retry."""

    kind = "gateway_error"
    recoverable = True

    def __init__(
        self,
        message: str,
        bet_id: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, bet_id=bet_id)
        self.status_code = status_code


class DataProviderError(BetError):
    """Financial-data provider call failed. Safe to retry."""

    kind = "data_provider_error"
    recoverable = True

    def __init__(
        self,
        message: str,
        bet_id: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, bet_id=bet_id)
        self.status_code = status_code
