import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import httpx
from loguru import logger

from tradeharvester.adapters.base import TradeSource
from tradeharvester.adapters.binance import BinanceAggTradeSource
from tradeharvester.config import Settings
from tradeharvester.persistence import PartitionWriter
from tradeharvester.utils.rate_limiter import RequestBudget
from tradeharvester.worker import (
    ERROR_BACKOFF_S,
    SymbolWorker,
    WorkerState,
    WorkerStats,
)


@dataclass(frozen=True)
class SymbolOutcome:
    """Where one worker ended up."""

    symbol: str
    state: WorkerState
    cursor: int
    stats: WorkerStats


@dataclass
class HarvestReport:
    """Final state of every worker of one harvest run."""

    outcomes: dict[str, SymbolOutcome] = field(default_factory=dict)

    @property
    def completed(self) -> list[str]:
        return [s for s, o in self.outcomes.items() if o.state is WorkerState.DONE]

    @property
    def aborted(self) -> list[str]:
        return [s for s, o in self.outcomes.items() if o.state is WorkerState.ABORTED]


class Harvester:
    """Runs one SymbolWorker per symbol concurrently against a shared budget.

    `run()` returns only when every worker has finished. A worker that keeps
    failing to fetch never finishes, so neither does `run()`; cancelling the
    task running `run()` is the way to stop early and cancels all workers.
    """

    def __init__(
        self,
        symbols: Sequence[str],
        source: TradeSource,
        budget: RequestBudget,
        output_directory: Path,
        writer: PartitionWriter | None = None,
        start_id: int = 0,
        error_backoff_sec: float = ERROR_BACKOFF_S,
        max_concurrent_symbols: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initializes the harvester and builds its workers.

        Args:
            symbols: The venue symbols to harvest; duplicates are ignored.
            source: The endpoint every worker pages through.
            budget: The request budget shared by all workers.
            output_directory: Root of the `<symbol>/<day>.csv` tree.
            writer: Partition writer shared by all workers.
            start_id: The first trade id each worker requests.
            error_backoff_sec: Pause after a failed fetch.
            max_concurrent_symbols: Cap on simultaneously running workers;
                None runs them all at once.
            sleep: Coroutine used for the workers' backoff pause.
        """
        if max_concurrent_symbols is not None and max_concurrent_symbols <= 0:
            err_msg = "max_concurrent_symbols must be a positive integer or None."
            raise ValueError(err_msg)
        # A bare string would otherwise become one worker per character.
        if isinstance(symbols, str):
            err_msg = f"Symbols must be a list of strings, got the string {symbols!r}."
            raise ValueError(err_msg)

        self.budget = budget
        self.output_directory = output_directory
        self.writer = writer or PartitionWriter()
        self._semaphore = (
            asyncio.Semaphore(max_concurrent_symbols)
            if max_concurrent_symbols is not None
            else None
        )
        self.workers: dict[str, SymbolWorker] = {
            symbol: SymbolWorker(
                symbol=symbol,
                source=source,
                budget=budget,
                writer=self.writer,
                output_directory=output_directory,
                start_id=start_id,
                error_backoff_sec=error_backoff_sec,
                sleep=sleep,
            )
            for symbol in dict.fromkeys(symbols)
        }

    async def _run_worker(self, worker: SymbolWorker) -> WorkerState:
        if self._semaphore is None:
            return await worker.run()
        async with self._semaphore:
            return await worker.run()

    async def run(self) -> HarvestReport:
        """Runs all workers to completion and reports how each one ended."""
        logger.info(
            f"Harvesting {len(self.workers)} symbols into "
            f"'{self.output_directory}': {list(self.workers)}"
        )
        async with asyncio.TaskGroup() as tg:
            for symbol, worker in self.workers.items():
                tg.create_task(self._run_worker(worker), name=f"harvest-{symbol}")

        report = HarvestReport(
            outcomes={
                symbol: SymbolOutcome(
                    symbol=symbol,
                    state=worker.state,
                    cursor=worker.cursor,
                    stats=worker.stats,
                )
                for symbol, worker in self.workers.items()
            }
        )
        for outcome in report.outcomes.values():
            logger.info(
                f"[{outcome.symbol}] {outcome.state.value}: cursor={outcome.cursor}, "
                f"rows_written={outcome.stats.rows_written}, "
                f"rows_lost={outcome.stats.rows_lost}, "
                f"fetch_errors={outcome.stats.fetch_errors}"
            )
        logger.success("All data collection tasks finished.")
        return report


async def run_from_settings(settings: Settings) -> HarvestReport:
    """Builds the HTTP client, budget, source and harvester from settings and runs."""
    timeout_sec = settings.source.timeout_seconds
    if not isinstance(timeout_sec, int | float) or timeout_sec <= 0:
        err_msg = "Request timeout must be a positive number of seconds."
        raise ValueError(err_msg)
    budget = RequestBudget(
        settings.budget.max_requests_per_minute,
        window_sec=settings.budget.window_seconds,
    )
    async with httpx.AsyncClient(timeout=timeout_sec) as client:
        source = BinanceAggTradeSource(
            client,
            endpoint=settings.source.endpoint,
            page_size=settings.harvest.page_size,
        )
        harvester = Harvester(
            symbols=settings.harvest.symbols,
            source=source,
            budget=budget,
            output_directory=Path(settings.persistence.output_directory),
            start_id=settings.harvest.start_id,
            error_backoff_sec=settings.harvest.error_backoff_seconds,
            max_concurrent_symbols=settings.harvest.max_concurrent_symbols,
        )
        return await harvester.run()
