import asyncio
from collections import Counter

import pytest

from tradeharvester.utils.rate_limiter import RequestBudget


class FakeClock:
    """A manual clock whose sleep jumps time forward instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        target = self.now + seconds
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        self.now = max(self.now, target)


def test_initialization_validation() -> None:
    """Tests that invalid limits and windows are rejected."""
    with pytest.raises(ValueError, match="Request limit must be a positive integer."):
        RequestBudget(0)
    with pytest.raises(ValueError, match="Request limit must be a positive integer."):
        RequestBudget(2.5)  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="Window must be a positive number"):
        RequestBudget(10, window_sec=0)


def test_initial_window_starts_at_construction() -> None:
    clock = FakeClock(start=100.0)
    budget = RequestBudget(5, window_sec=61, clock=clock, sleep=clock.sleep)
    assert budget.count == 0
    assert budget.window_end == pytest.approx(161.0)


@pytest.mark.asyncio
async def test_grants_immediately_below_limit() -> None:
    """Tests that acquire returns without sleeping while slots remain."""
    clock = FakeClock()
    budget = RequestBudget(3, window_sec=10, clock=clock, sleep=clock.sleep)

    for _ in range(3):
        await budget.acquire()

    assert budget.count == 3
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_waits_for_window_end_when_exhausted() -> None:
    """Tests that the caller over the limit sleeps until the window resets."""
    clock = FakeClock()
    budget = RequestBudget(3, window_sec=10, clock=clock, sleep=clock.sleep)
    for _ in range(3):
        await budget.acquire()

    clock.now = 4.0
    await budget.acquire()

    assert clock.sleeps == [pytest.approx(6.0)]
    assert clock.now == pytest.approx(10.0)
    # The fourth request opened a fresh window.
    assert budget.count == 1
    assert budget.window_end == pytest.approx(20.0)


@pytest.mark.asyncio
async def test_lazy_reset_after_idle_period() -> None:
    """Tests that an expired window is reset by the next caller, not by a timer."""
    clock = FakeClock()
    budget = RequestBudget(2, window_sec=10, clock=clock, sleep=clock.sleep)
    await budget.acquire()
    await budget.acquire()

    clock.now = 35.0
    await budget.acquire()

    assert clock.sleeps == []
    assert budget.count == 1
    assert budget.window_end == pytest.approx(45.0)


@pytest.mark.asyncio
async def test_concurrent_callers_never_exceed_limit_per_window() -> None:
    """Tests that racing callers share each window's slots without overshoot."""
    clock = FakeClock()
    budget = RequestBudget(3, window_sec=10, clock=clock, sleep=clock.sleep)
    grant_times: list[float] = []

    async def caller() -> None:
        await budget.acquire()
        grant_times.append(clock())

    await asyncio.gather(*(caller() for _ in range(10)))

    assert len(grant_times) == 10
    per_window = Counter(grant_times)
    assert all(n <= budget.limit for n in per_window.values())
    assert sorted(grant_times) == [0, 0, 0, 10, 10, 10, 20, 20, 20, 30]


@pytest.mark.asyncio
async def test_sequential_grants_respect_every_window() -> None:
    """Tests the cap across many windows when each request takes some time."""
    clock = FakeClock()
    budget = RequestBudget(4, window_sec=10, clock=clock, sleep=clock.sleep)
    windows: Counter[float] = Counter()

    for _ in range(30):
        await budget.acquire()
        windows[budget.window_end] += 1
        clock.now += 0.5  # time spent on the request itself

    assert sum(windows.values()) == 30
    assert max(windows.values()) == budget.limit
    # Consecutive windows are at least one window length apart.
    ends = sorted(windows)
    assert all(b - a >= budget.window_sec for a, b in zip(ends, ends[1:]))


@pytest.mark.asyncio
async def test_lock_is_released_while_waiting() -> None:
    """Tests that a parked caller does not keep others from checking the window."""
    clock = FakeClock()
    budget: RequestBudget
    lock_held_during_sleep: list[bool] = []
    second_caller_checked = asyncio.Event()

    async def observing_sleep(seconds: float) -> None:
        lock_held_during_sleep.append(budget._lock.locked())
        # Another exhausted caller must get through its own check meanwhile.
        if len(lock_held_during_sleep) == 1:
            await asyncio.wait_for(second_caller_checked.wait(), timeout=1)
        else:
            second_caller_checked.set()
        await clock.sleep(seconds)

    budget = RequestBudget(1, window_sec=10, clock=clock, sleep=observing_sleep)
    await budget.acquire()

    await asyncio.gather(budget.acquire(), budget.acquire())

    assert lock_held_during_sleep[:2] == [False, False]
    assert second_caller_checked.is_set()
