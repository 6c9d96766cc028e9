from .client import FinanceDataClient, FinancialDataProvider, create_finance_client
from .config import FinanceDataConfig
from .exceptions import FinanceAPIError, FinanceAuthError, FinanceNotFoundError

__all__ = [
    "FinanceDataClient",
    "FinancialDataProvider",
    "create_finance_client",
    "FinanceDataConfig",
    "FinanceAPIError",
    "FinanceAuthError",
    "FinanceNotFoundError",
]
