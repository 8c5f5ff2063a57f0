import json
from typing import Any

import httpx
from loguru import logger

from tradeharvester.adapters.base import TradeSource
from tradeharvester.exceptions import FetchError
from tradeharvester.models import TradeRecord

DEFAULT_PAGE_SIZE: int = 1000


class BinanceAggTradeSource(TradeSource):
    """Reads the Binance spot `aggTrades` endpoint one page at a time."""

    _DEFAULT_URL: str = "https://api.binance.com/api/v3/aggTrades"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        endpoint: str = _DEFAULT_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initializes the source.

        Args:
            http_client: A shared client; its timeout bounds every request.
            endpoint: Full URL of the aggregated-trades endpoint.
            page_size: The `limit` query parameter (Binance caps it at 1000).
        """
        if not isinstance(page_size, int) or page_size <= 0:
            err_msg = "Page size must be a positive integer."
            raise ValueError(err_msg)
        self.http_client = http_client
        self.endpoint = endpoint
        self.page_size = page_size

    @property
    def venue_name(self) -> str:
        """Returns the unique, lowercase identifier for the exchange."""
        return "binance"

    async def fetch_page(self, symbol: str, from_id: int) -> list[TradeRecord]:
        """Fetches up to `page_size` aggregated trades starting at `from_id`."""
        params = {
            "symbol": symbol,
            "limit": self.page_size,
            "fromId": from_id,
        }
        try:
            response = await self.http_client.get(self.endpoint, params=params)
        except httpx.HTTPError as e:
            err_msg = f"Request for {symbol} failed: {type(e).__name__}: {e}"
            raise FetchError(err_msg) from e

        if not response.is_success:
            err_msg = (
                f"API error: status code {response.status_code}, "
                f"body: {response.text}"
            )
            raise FetchError(
                err_msg, status_code=response.status_code, body=response.text
            )

        return self._decode_page(symbol, response)

    def _decode_page(self, symbol: str, response: httpx.Response) -> list[TradeRecord]:
        try:
            payload: Any = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            err_msg = f"Malformed JSON body for {symbol}: {e}"
            raise FetchError(err_msg, status_code=response.status_code) from e

        if not isinstance(payload, list):
            err_msg = (
                f"Expected a JSON array for {symbol}, "
                f"got {type(payload).__name__}."
            )
            raise FetchError(err_msg, status_code=response.status_code)

        try:
            records = [TradeRecord.from_payload(item) for item in payload]
        except ValueError as e:
            err_msg = f"Could not decode trade for {symbol}: {e}"
            raise FetchError(err_msg, status_code=response.status_code) from e

        logger.debug(f"[{self.venue_name}] Decoded {len(records)} trades for {symbol}.")
        return records
