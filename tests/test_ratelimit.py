import asyncio

import pytest

from zohobooks import AsyncRateLimiter, RateLimiter


def _max_in_any_window(times, window=60.0):
    return max(sum(1 for t in times if start <= t < start + window) for start in times)


def test_k_plus_first_admit_waits(clock):
    limiter = RateLimiter(3, clock=clock, sleep=clock.sleep)
    waits = [limiter.admit() for _ in range(4)]
    assert waits[:3] == [0.0, 0.0, 0.0]
    assert waits[3] > 0
    assert waits[3] == pytest.approx(60.0)
    assert clock.sleeps == [pytest.approx(60.0)]


def test_wait_accounts_for_elapsed_time(clock):
    limiter = RateLimiter(2, clock=clock, sleep=clock.sleep)
    limiter.admit()
    clock.now += 15
    limiter.admit()
    clock.now += 5
    # oldest admission is 20s old -> 40s left in its window
    assert limiter.admit() == pytest.approx(40.0)


def test_window_never_exceeds_limit(clock):
    limiter = RateLimiter(3, clock=clock, sleep=clock.sleep)
    times = []
    for i in range(12):
        limiter.admit()
        times.append(clock.now)
        clock.now += 7 if i % 4 == 0 else 1
    assert _max_in_any_window(times) <= 3  # noqa: PLR2004


def test_stale_timestamps_are_purged(clock):
    limiter = RateLimiter(2, clock=clock, sleep=clock.sleep)
    limiter.admit()
    limiter.admit()
    assert limiter.pending() == 2  # noqa: PLR2004
    clock.now += 61
    assert limiter.pending() == 0
    assert limiter.admit() == 0.0


@pytest.mark.parametrize("bad", [0, -5])
def test_non_positive_limit_rejected(bad):
    with pytest.raises(ValueError):
        RateLimiter(bad)


@pytest.mark.asyncio
async def test_async_concurrent_callers_respect_window(clock):
    slept = []

    async def record(seconds):
        # time stands still, so every caller reserves against the same instant
        slept.append(seconds)
        await asyncio.sleep(0)

    limiter = AsyncRateLimiter(2, clock=clock, sleep=record)
    waits = await asyncio.gather(*(limiter.admit() for _ in range(5)))
    assert sorted(waits) == [0.0, 0.0, 60.0, 60.0, 120.0]
    assert sorted(slept) == [60.0, 60.0, 120.0]
    assert limiter.pending() == 5  # noqa: PLR2004


@pytest.mark.asyncio
async def test_cancelled_waiter_releases_its_slot(clock):
    blocker = asyncio.Event()

    async def never(_seconds):
        await blocker.wait()

    limiter = AsyncRateLimiter(1, clock=clock, sleep=never)
    await limiter.admit()
    waiter = asyncio.create_task(limiter.admit())
    await asyncio.sleep(0)
    assert limiter.pending() == 2  # noqa: PLR2004
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert limiter.pending() == 1


def test_interrupted_sleep_releases_its_slot(clock):
    def interrupted(_seconds):
        raise KeyboardInterrupt

    limiter = RateLimiter(1, clock=clock, sleep=interrupted)
    limiter.admit()
    with pytest.raises(KeyboardInterrupt):
        limiter.admit()
    assert limiter.pending() == 1
