"""Exception types shared by the fetch, persistence and worker layers."""


class HarvestError(Exception):
    """Base exception for all harvester errors."""


class FetchError(HarvestError):
    """Raised when a page could not be fetched or decoded. Always retryable.

    Attributes:
        status_code: The HTTP status code, if the server answered at all.
        body: The raw response body for non-2xx answers.
    """

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SetupError(HarvestError):
    """Raised when a worker cannot prepare its output location."""

    def __init__(self, symbol: str, message: str) -> None:
        super().__init__(f"[{symbol}] {message}")
        self.symbol = symbol
