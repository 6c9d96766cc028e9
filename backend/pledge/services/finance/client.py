from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import httpx

from pledge.config import Settings

from .config import FinanceDataConfig
from .exceptions import FinanceAPIError, FinanceAuthError, FinanceNotFoundError

logger = logging.getLogger(__name__)


class FinancialDataProvider(Protocol):
    """Source of a bet's tracked metric (e.g. dollars saved)."""

    async def get_current_value(
        self,
        owner_id: str,
        category: str,
        *,
        since: datetime,
        as_of: datetime,
    ) -> Decimal: ...


class FinanceDataClient:
    """Reads per-owner goal metrics from the account-aggregation service.

    The service may lag reality; values are passed through as reported.
    """

    def __init__(
        self,
        config: FinanceDataConfig | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or FinanceDataConfig()
        self.api_key = api_key or ""
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        logger.info(f"Initialized FinanceDataClient ({self.config.base_url})")

    async def __aenter__(self) -> FinanceDataClient:
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            limits=limits,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed FinanceDataClient")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "FinanceDataClient must be used as async context manager"
            )
        return self._client

    async def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        retry_count = 0
        last_error: Exception | None = None

        while retry_count < self.config.max_retries:
            try:
                response = await self.client.get(endpoint, params=params)

                if response.status_code == 401:
                    raise FinanceAuthError("Authentication failed", status_code=401)
                elif response.status_code == 404:
                    raise FinanceNotFoundError(
                        f"Resource not found: {endpoint}", status_code=404
                    )
                elif response.status_code == 429 or response.status_code >= 500:
                    wait_time = self.config.backoff_base_seconds * 2 ** retry_count
                    logger.warning(
                        f"Provider returned {response.status_code}, "
                        f"retrying in {wait_time}s..."
                    )
                    last_error = FinanceAPIError(
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                    await asyncio.sleep(wait_time)
                    retry_count += 1
                    continue
                elif response.status_code >= 400:
                    raise FinanceAPIError(
                        f"Provider rejected request: {response.text}",
                        status_code=response.status_code,
                    )

                return response.json()

            except httpx.TimeoutException as e:
                last_error = e
                retry_count += 1
                if retry_count < self.config.max_retries:
                    logger.warning(f"Timeout, retrying ({retry_count})...")
                    await asyncio.sleep(self.config.backoff_base_seconds)

            except httpx.RequestError as e:
                last_error = e
                logger.error(f"Network error: {e}")
                break

        raise FinanceAPIError(
            f"Request failed after {retry_count} retries: {last_error}"
        )

    async def get_current_value(
        self,
        owner_id: str,
        category: str,
        *,
        since: datetime,
        as_of: datetime,
    ) -> Decimal:
        data = await self._get(
            f"owners/{owner_id}/metrics/{category}",
            params={"since": since.isoformat(), "as_of": as_of.isoformat()},
        )

        raw_value = data.get("value")
        try:
            value = Decimal(str(raw_value))
        except (InvalidOperation, ValueError):
            raise FinanceAPIError(
                f"Invalid metric value for {owner_id}/{category}: {raw_value!r}"
            )
        if not value.is_finite() or value < 0:
            raise FinanceAPIError(
                f"Invalid metric value for {owner_id}/{category}: {raw_value!r}"
            )

        logger.debug(f"Metric {owner_id}/{category} as of {as_of}: {value}")
        return value


def create_finance_client(settings: Settings) -> FinanceDataClient:
    """Create a FinanceDataClient configured from application settings."""
    config = FinanceDataConfig(
        base_url=settings.data_provider.base_url,
        timeout_seconds=settings.data_provider.timeout_seconds,
        max_retries=settings.data_provider.max_retries,
    )
    return FinanceDataClient(config=config, api_key=settings.finance_api_key)
