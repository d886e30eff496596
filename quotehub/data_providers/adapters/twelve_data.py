"""
Twelve Data Adapter

Primary quote provider. Uses the Twelve Data /quote endpoint, which accepts
a comma-separated batch of symbols in one request.

API Documentation: https://twelvedata.com/docs
Free tier: 800 API credits/day, 8 requests/minute
"""
from typing import Any
from loguru import logger

from quotehub.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    Quote,
    DataParsingError,
    HEALTH_CHECK_SYMBOL,
    error_for_status,
    parse_timestamp,
)


TWELVE_DATA_BASE_URL = "https://api.twelvedata.com"


def create_twelve_data_config(
    api_key: str,
    name: str = "primary",
    base_url: str = TWELVE_DATA_BASE_URL,
    requests_per_minute: int = 8,
    **overrides: Any,
) -> ProviderConfig:
    """Create configuration for Twelve Data adapter."""
    return ProviderConfig(
        name=name,
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        requests_per_minute=requests_per_minute,  # Free tier
        priority=10,
        **overrides,
    )


class TwelveDataAdapter(BaseAdapter):
    """
    Twelve Data provider adapter.

    Twelve Data reports some errors inside a 200 response body
    ({"code": 401, "status": "error", ...}); those codes are mapped the same
    way as HTTP statuses. A single-symbol request returns the quote object
    itself, a batch returns an object keyed by symbol.

    Usage:
        config = create_twelve_data_config("your_api_key")
        adapter = TwelveDataAdapter(config)
        await adapter.initialize()

        result = await adapter.fetch_quotes(["AAPL", "MSFT", "GOOGL"])
    """

    async def _request_quotes(self, provider_symbols: list[str]) -> list[dict[str, Any]]:
        url = f"{self.config.base_url}/quote"
        params = {
            "symbol": ",".join(provider_symbols),
            "apikey": self.config.api_key or "",
        }

        data = await self._get_json(url, params=params)
        if data is None:
            return []
        if not isinstance(data, dict):
            raise DataParsingError(self.name, f"Unexpected response type: {type(data).__name__}", str(data)[:200])

        self._raise_for_body_error(data)

        # Single symbol returns the quote object itself
        if "symbol" in data:
            return [data]

        records = []
        for symbol, quote_data in data.items():
            if not isinstance(quote_data, dict):
                logger.warning(f"Twelve Data returned malformed entry for {symbol}, skipping")
                continue
            if "code" in quote_data or quote_data.get("status") == "error":
                logger.debug(f"Twelve Data could not resolve {symbol}: {quote_data.get('message', 'unknown')}")
                continue
            records.append({"symbol": symbol, **quote_data})

        if data and not records and not any(isinstance(v, dict) for v in data.values()):
            raise DataParsingError(self.name, "Response has no quote objects", str(data)[:200])
        return records

    def _raise_for_body_error(self, data: dict[str, Any]) -> None:
        """Map an error embedded in a 200 body."""
        if "code" not in data and data.get("status") != "error":
            return
        try:
            code = int(data.get("code", 500))
        except (TypeError, ValueError):
            code = 500
        message = str(data.get("message", "Unknown error"))
        error = error_for_status(self.name, code, message, retry_after=60.0 if code == 429 else None)
        if error is not None:
            raise error
        # 404 or a non-error code: nothing resolved

    def _parse_quote(self, raw: dict[str, Any]) -> Quote:
        """Parse quote response."""
        symbol = str(raw.get("symbol", "")).upper()
        if not symbol:
            raise DataParsingError(self.name, "Quote object has no symbol", str(raw)[:200])

        timestamp = raw.get("timestamp") or raw.get("datetime")
        return Quote(
            symbol=symbol,
            display_name=str(raw.get("name") or symbol),
            price=self._price_field(raw, "close", symbol),
            open=self._price_field(raw, "open", symbol),
            high=self._price_field(raw, "high", symbol),
            low=self._price_field(raw, "low", symbol),
            previous_close=self._price_field(raw, "previous_close", symbol),
            timestamp=parse_timestamp(timestamp),
        )

    async def _check_upstream(self) -> bool:
        """Check API connectivity with a single well-known symbol."""
        records = await self._request_quotes([HEALTH_CHECK_SYMBOL])
        return bool(records)
