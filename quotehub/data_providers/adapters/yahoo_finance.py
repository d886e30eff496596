"""
Yahoo Finance Adapter

Secondary quote provider. Uses the Yahoo Finance REST quote endpoint
(/v6/finance/quote) with an X-API-KEY header. Looser quota than the primary,
so it serves as the fallback when the primary is throttled or down.
"""
from typing import Any
from loguru import logger

from quotehub.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    Quote,
    DataParsingError,
    HEALTH_CHECK_SYMBOL,
    parse_timestamp,
)


YAHOO_FINANCE_BASE_URL = "https://yfapi.net"
QUOTE_PATH = "/v6/finance/quote"


def create_yahoo_finance_config(
    api_key: str,
    name: str = "secondary",
    base_url: str = YAHOO_FINANCE_BASE_URL,
    requests_per_minute: int = 60,
    **overrides: Any,
) -> ProviderConfig:
    """Create configuration for Yahoo Finance adapter."""
    return ProviderConfig(
        name=name,
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        requests_per_minute=requests_per_minute,
        priority=20,
        **overrides,
    )


class YahooFinanceAdapter(BaseAdapter):
    """
    Yahoo Finance provider adapter.

    Response shape:
        {"quoteResponse": {"result": [{"symbol": ..., "regularMarketPrice": ...}], "error": null}}

    Symbols missing from result are reported as unresolved.
    """

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["X-API-KEY"] = self.config.api_key
        return headers

    async def _request_quotes(self, provider_symbols: list[str]) -> list[dict[str, Any]]:
        url = f"{self.config.base_url}{QUOTE_PATH}"
        params = {"symbols": ",".join(provider_symbols)}

        data = await self._get_json(url, params=params, headers=self._headers())
        if data is None:
            return []

        response = data.get("quoteResponse") if isinstance(data, dict) else None
        if not isinstance(response, dict):
            raise DataParsingError(self.name, "Response has no quoteResponse object", str(data)[:200])

        if response.get("error"):
            logger.warning(f"Yahoo Finance reported error: {response['error']}")

        results = response.get("result")
        if results is None:
            return []
        if not isinstance(results, list):
            raise DataParsingError(self.name, "quoteResponse.result is not a list", str(results)[:200])

        return [r for r in results if isinstance(r, dict)]

    def _parse_quote(self, raw: dict[str, Any]) -> Quote:
        symbol = str(raw.get("symbol", "")).upper()
        if not symbol:
            raise DataParsingError(self.name, "Quote object has no symbol", str(raw)[:200])

        return Quote(
            symbol=symbol,
            display_name=str(raw.get("shortName") or raw.get("longName") or symbol),
            price=self._price_field(raw, "regularMarketPrice", symbol),
            open=self._price_field(raw, "regularMarketOpen", symbol),
            high=self._price_field(raw, "regularMarketDayHigh", symbol),
            low=self._price_field(raw, "regularMarketDayLow", symbol),
            previous_close=self._price_field(raw, "regularMarketPreviousClose", symbol),
            timestamp=parse_timestamp(raw.get("regularMarketTime")),
        )

    async def _check_upstream(self) -> bool:
        """Healthy when the well-known symbol comes back with a price."""
        records = await self._request_quotes([HEALTH_CHECK_SYMBOL])
        return any(r.get("regularMarketPrice") is not None for r in records)
