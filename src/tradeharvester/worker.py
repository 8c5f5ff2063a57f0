import asyncio
import csv
import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from tradeharvester.adapters.base import TradeSource
from tradeharvester.exceptions import FetchError, SetupError
from tradeharvester.models import TradeRecord
from tradeharvester.partitioner import group_by_utc_date
from tradeharvester.persistence import (
    PartitionWriter,
    ensure_symbol_directory,
    partition_path,
)
from tradeharvester.utils.rate_limiter import RequestBudget
from tradeharvester.utils.time import ms_to_rfc3339

# Fixed pause after a failed fetch. There is no retry ceiling.
ERROR_BACKOFF_S: float = 5.0

# Errors a partition append may surface. They cost that partition's rows only.
WRITE_ERRORS: tuple[type[Exception], ...] = (OSError, csv.Error, UnicodeError)


class WorkerState(enum.Enum):
    """Lifecycle of a SymbolWorker."""

    PENDING = "pending"
    RUNNING = "running"
    RETRY_BACKOFF = "retry_backoff"
    DONE = "done"
    # Output directory could not be created; no page was fetched.
    ABORTED = "aborted"


@dataclass
class WorkerStats:
    """Counters for one worker. They are observational only."""

    fetches: int = 0
    fetch_errors: int = 0
    pages: int = 0
    records: int = 0
    rows_written: int = 0
    rows_lost: int = 0
    write_errors: int = 0


class SymbolWorker:
    """Walks one symbol's trade history from `start_id` to the live head.

    Each iteration takes a slot from the shared budget, fetches the page at the
    cursor, appends it to the per-day partitions and moves the cursor past the
    page's last trade. A failed fetch is retried forever after a fixed pause;
    the budget is consulted again on every retry. An empty page is the only way
    to finish.

    A failed partition append is logged and those rows are dropped: the cursor
    still advances, so they are not fetched again in this run.
    """

    def __init__(
        self,
        symbol: str,
        source: TradeSource,
        budget: RequestBudget,
        writer: PartitionWriter,
        output_directory: Path,
        start_id: int = 0,
        error_backoff_sec: float = ERROR_BACKOFF_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initializes the worker.

        Args:
            symbol: The venue symbol to harvest, e.g. 'ETHUSDT'.
            source: The endpoint to page through.
            budget: The request budget shared with every other worker.
            writer: Appends rows to partition files.
            output_directory: Root under which `<symbol>/<day>.csv` is written.
            start_id: The first trade id to request.
            error_backoff_sec: Pause after a failed fetch.
            sleep: Coroutine used for the backoff pause.
        """
        if start_id < 0:
            err_msg = "Start id must not be negative."
            raise ValueError(err_msg)
        if error_backoff_sec < 0:
            err_msg = "Error backoff must not be negative."
            raise ValueError(err_msg)

        self.symbol = symbol
        self.source = source
        self.budget = budget
        self.writer = writer
        self.output_directory = output_directory
        self.error_backoff_sec = error_backoff_sec
        self._sleep = sleep
        self._cursor = start_id
        self._state = WorkerState.PENDING
        self.stats = WorkerStats()

    @property
    def cursor(self) -> int:
        """The next trade id this worker will request."""
        return self._cursor

    @property
    def state(self) -> WorkerState:
        return self._state

    async def run(self) -> WorkerState:
        """Runs the worker until the source is exhausted.

        Returns:
            `DONE`, or `ABORTED` if the output directory could not be created.
        """
        logger.info(f"[{self.symbol}] Starting data collection from id {self._cursor}.")
        try:
            await self._prepare()
        except SetupError as e:
            logger.error(str(e))
            self._state = WorkerState.ABORTED
            return self._state

        self._state = WorkerState.RUNNING
        while self._state is not WorkerState.DONE:
            await self._step()

        logger.success(
            f"[{self.symbol}] No more trades found. Finished at id {self._cursor} "
            f"({self.stats.records} trades in {self.stats.pages} pages)."
        )
        return self._state

    async def _prepare(self) -> None:
        try:
            await ensure_symbol_directory(self.output_directory, self.symbol)
        except OSError as e:
            err_msg = f"Error creating directory: {e}"
            raise SetupError(self.symbol, err_msg) from e

    async def _step(self) -> None:
        """One budgeted fetch and its consequences."""
        await self.budget.acquire()
        self._state = WorkerState.RUNNING

        logger.debug(f"[{self.symbol}] Fetching from id {self._cursor}.")
        self.stats.fetches += 1
        try:
            page = await self.source.fetch_page(self.symbol, self._cursor)
        except FetchError as e:
            self.stats.fetch_errors += 1
            self._state = WorkerState.RETRY_BACKOFF
            logger.warning(
                f"[{self.symbol}] Error fetching trades: {e}. "
                f"Retrying in {self.error_backoff_sec:.1f}s."
            )
            await self._sleep(self.error_backoff_sec)
            return

        if not page:
            self._state = WorkerState.DONE
            return

        await self._store_page(page)
        self._cursor = page[-1].trade_id + 1

    async def _store_page(self, page: list[TradeRecord]) -> None:
        self.stats.pages += 1
        self.stats.records += len(page)
        logger.debug(
            f"[{self.symbol}] {len(page)} trades from id {page[0].trade_id} "
            f"({ms_to_rfc3339(page[0].timestamp_ms)}) to id {page[-1].trade_id}."
        )

        for date_str, rows in group_by_utc_date(page).items():
            path = partition_path(self.output_directory, self.symbol, date_str)
            try:
                self.stats.rows_written += await self.writer.append(path, rows)
            except WRITE_ERRORS as e:
                self.stats.write_errors += 1
                self.stats.rows_lost += len(rows)
                logger.error(
                    f"[{self.symbol}] Error saving {len(rows)} rows to CSV "
                    f"for {date_str}: {e}"
                )
