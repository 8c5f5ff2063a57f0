import asyncio
import time
from collections.abc import Awaitable, Callable

from loguru import logger

# One minute plus a second of slack for clock skew and response latency.
DEFAULT_WINDOW_SECONDS: float = 61.0


class RequestBudget:
    """A shared per-minute request counter for all workers of one process.

    The budget hands out at most `limit` request slots per window. The window
    is reset lazily by the first caller that arrives after it has expired, so
    no background task is needed. Callers that find the budget exhausted
    sleep until the window ends and then compete for the fresh slots again;
    whoever reacquires the lock first wins, there is no queueing order.

    The lock only guards the counter update. It is never held across a sleep,
    so waiting callers do not block each other from re-checking the window.

    Usage:
        budget = RequestBudget(1499)
        async def worker() -> None:
            while True:
                await budget.acquire()
                await make_api_call()
    """

    def __init__(
        self,
        limit: int,
        window_sec: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initializes the budget with a full window starting now.

        Args:
            limit: The maximum number of requests granted per window.
            window_sec: The window length in seconds.
            clock: Monotonic time source, in seconds.
            sleep: Coroutine used to wait for the window to end.
        """
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            err_msg = "Request limit must be a positive integer."
            raise ValueError(err_msg)
        if not isinstance(window_sec, int | float) or window_sec <= 0:
            err_msg = "Window must be a positive number of seconds."
            raise ValueError(err_msg)

        self.limit = limit
        self.window_sec = float(window_sec)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._count = 0
        self._window_end = clock() + self.window_sec

    @property
    def count(self) -> int:
        """Requests granted in the current window."""
        return self._count

    @property
    def window_end(self) -> float:
        """Clock reading at which the current window expires."""
        return self._window_end

    async def acquire(self) -> None:
        """Waits until a request slot is free in the current window and takes it.

        This never fails; the longest single wait is one window length.
        """
        while True:
            async with self._lock:
                now = self._clock()
                if now >= self._window_end:
                    logger.info(
                        f"Request count reset. Previous window's count: {self._count}"
                    )
                    self._count = 0
                    self._window_end = now + self.window_sec

                if self._count < self.limit:
                    self._count += 1
                    logger.debug(
                        f"Request permitted. Current window's count: "
                        f"{self._count}/{self.limit}"
                    )
                    return

                wait_sec = self._window_end - now

            # Outside the lock: other callers may check the window meanwhile.
            logger.info(f"Rate limit reached. Waiting for {wait_sec:.2f}s...")
            await self._sleep(wait_sec)
