"""Clock implementations."""

from datetime import UTC, datetime, timedelta

import pytest

from homebox_kernel.domain.clock import SteppingClock, SystemClock


def test_system_clock_is_utc_aware():
    now = SystemClock().now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_stepping_clock_is_strictly_increasing():
    clock = SteppingClock()
    readings = [clock.now() for _ in range(100)]
    assert readings == sorted(readings)
    assert len(set(readings)) == 100


def test_stepping_clock_rewind_and_advance():
    start = datetime(2024, 6, 1, tzinfo=UTC)
    clock = SteppingClock(start=start, step=timedelta(seconds=1))
    assert clock.now() == start + timedelta(seconds=1)
    clock.rewind(timedelta(hours=1))
    assert clock.now() < start
    clock.advance(timedelta(days=1))
    assert clock.now() > start + timedelta(hours=23)


def test_stepping_clock_naive_start_is_utc():
    clock = SteppingClock(start=datetime(2024, 1, 1))
    assert clock.now().tzinfo == UTC


def test_stepping_clock_rejects_non_positive_step():
    with pytest.raises(ValueError):
        SteppingClock(step=timedelta(0))
