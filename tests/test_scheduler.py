import asyncio

import pytest

from fallen_angel.scanner.scheduler import ScanScheduler


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


async def test_runs_requested_number_of_cycles():
    calls = []

    async def cycle():
        calls.append(1)

    scheduler = ScanScheduler(cycle, 0.01, countdown_seconds=0.01)
    await scheduler.run(max_cycles=3)

    assert len(calls) == 3
    assert scheduler.cycles_run == 3


async def test_failing_cycle_does_not_stop_the_loop():
    calls = []

    async def cycle():
        calls.append(1)
        raise RuntimeError("provider outage")

    scheduler = ScanScheduler(cycle, 0.01, countdown_seconds=0.01)
    await scheduler.run(max_cycles=2)

    assert len(calls) == 2


async def test_stop_interrupts_the_wait():
    async def cycle():
        pass

    scheduler = ScanScheduler(cycle, 3600)
    task = asyncio.create_task(scheduler.run())
    await asyncio.sleep(0.05)
    assert scheduler.seconds_until_next() > 3500

    scheduler.stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert scheduler.stopped
    assert scheduler.cycles_run == 1


async def test_stop_during_cycle_prevents_next_cycle():
    calls = []

    async def cycle():
        calls.append(1)
        scheduler.stop()

    scheduler = ScanScheduler(cycle, 3600)
    await asyncio.wait_for(scheduler.run(), timeout=1.0)

    assert len(calls) == 1


def test_overrun_skips_missed_ticks():
    clock = FakeClock()

    async def cycle():
        pass

    scheduler = ScanScheduler(cycle, 300, clock=clock)
    scheduler.next_run_at = 0.0
    clock.now = 650.0  # cycle ran past two interval boundaries

    scheduler._advance()

    assert scheduler.next_run_at == 900.0
    assert scheduler.ticks_skipped == 2
    assert scheduler.seconds_until_next() == 250.0


def test_on_time_cycle_keeps_fixed_cadence():
    clock = FakeClock()

    async def cycle():
        pass

    scheduler = ScanScheduler(cycle, 300, clock=clock)
    scheduler.next_run_at = 0.0
    clock.now = 40.0

    scheduler._advance()

    assert scheduler.next_run_at == 300.0
    assert scheduler.ticks_skipped == 0
    assert scheduler.seconds_until_next() == 260.0


def test_rejects_non_positive_interval():
    async def cycle():
        pass

    with pytest.raises(ValueError):
        ScanScheduler(cycle, 0)
