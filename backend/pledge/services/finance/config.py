from pydantic import BaseModel


class FinanceDataConfig(BaseModel):
    """Configuration for the financial-data provider client."""

    base_url: str = "http://localhost:8100/api/v1"
    timeout_seconds: float = 10.0
    max_connections: int = 20
    max_keepalive_connections: int = 5
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
