from pledge.bets.exceptions import DataProviderError


class FinanceAPIError(DataProviderError):
    """Base exception for financial-data provider errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, status_code=status_code)


class FinanceAuthError(FinanceAPIError):
    """Authentication failed."""

    pass


class FinanceNotFoundError(FinanceAPIError):
    """No metric available for the owner/category."""

    pass
