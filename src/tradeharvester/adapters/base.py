import abc

from tradeharvester.models import TradeRecord


class TradeSource(abc.ABC):
    """An abstract base class for paginated trade-history endpoints.

    A source performs exactly one request per `fetch_page` call and never
    retries; retry policy belongs to the caller. An empty page means the
    cursor has caught up with the head of the exchange's history.
    """

    @property
    @abc.abstractmethod
    def venue_name(self) -> str:
        """A unique, lowercase identifier for the exchange (e.g., 'binance')."""
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_page(self, symbol: str, from_id: int) -> list[TradeRecord]:
        """Fetches the page of trades starting at `from_id` (inclusive).

        Args:
            symbol: The venue symbol, e.g. 'ETHUSDT'.
            from_id: The first aggregate trade id to return.

        Returns:
            The decoded records in ascending id order; empty when caught up.

        Raises:
            FetchError: On network failure, a non-2xx status, or a body that
                does not decode into trade records.
        """
        raise NotImplementedError
