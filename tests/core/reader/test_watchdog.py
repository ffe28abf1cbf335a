"""Unit tests for core.reader.watchdog module."""

from __future__ import annotations

import asyncio
import logging

import pytest

from core.reader.watchdog import Watchdog


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError, match="positive"):
        Watchdog(0, lambda: None)


@pytest.mark.asyncio
async def test_watchdog_runs_check_periodically_until_stopped() -> None:
    ticks: list[int] = []
    watchdog = Watchdog(0.01, lambda: ticks.append(1))

    watchdog.start()
    assert watchdog.is_running is True
    await asyncio.sleep(0.05)
    watchdog.stop()
    count: int = len(ticks)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(ticks) == count
    assert watchdog.is_running is False


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task() -> None:
    watchdog = Watchdog(10, lambda: None)

    watchdog.start()
    first = watchdog._task
    watchdog.start()

    assert watchdog._task is first
    watchdog.stop()


def test_stop_when_not_running_is_noop() -> None:
    watchdog = Watchdog(1, lambda: None)

    watchdog.stop()

    assert watchdog.is_running is False


@pytest.mark.asyncio
async def test_failing_check_is_logged_and_ticking_continues(caplog: pytest.LogCaptureFixture) -> None:
    calls: list[int] = []

    def check() -> None:
        calls.append(1)
        msg = "boom"
        raise RuntimeError(msg)

    watchdog = Watchdog(0.01, check)
    with caplog.at_level(logging.ERROR):
        watchdog.start()
        await asyncio.sleep(0.05)
        watchdog.stop()

    assert len(calls) >= 2
    assert "Watchdog check failed" in caplog.text
