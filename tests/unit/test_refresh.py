from __future__ import annotations

import asyncio

import pytest

from securepay.sync.refresh import RefreshCoordinator


class _GatedFetch:
    """Fetch that blocks until released, counting calls."""

    def __init__(self) -> None:
        self.calls = 0
        self.gate = asyncio.Event()

    async def __call__(self) -> None:
        self.calls += 1
        await self.gate.wait()


@pytest.mark.asyncio
async def test_single_request_runs_one_fetch() -> None:
    fetch = _GatedFetch()
    fetch.gate.set()
    coordinator = RefreshCoordinator(fetch, name="test")

    coordinator.request()
    await coordinator.wait_idle()

    assert fetch.calls == 1
    assert coordinator.running is False


@pytest.mark.asyncio
async def test_requests_during_fetch_coalesce_into_one_follow_up() -> None:
    fetch = _GatedFetch()
    coordinator = RefreshCoordinator(fetch, name="test")

    coordinator.request()
    await asyncio.sleep(0)
    for _ in range(5):
        coordinator.request()
    fetch.gate.set()
    await coordinator.wait_idle()

    assert coordinator.requests == 6
    assert fetch.calls == 2
    assert coordinator.fetches == 2


@pytest.mark.asyncio
async def test_failed_fetch_does_not_stop_later_refreshes() -> None:
    calls = []

    async def flaky() -> None:
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("network down")

    coordinator = RefreshCoordinator(flaky, name="test")
    coordinator.request()
    await coordinator.wait_idle()
    coordinator.request()
    await coordinator.wait_idle()

    assert calls == [0, 1]


@pytest.mark.asyncio
async def test_aclose_cancels_in_flight_fetch() -> None:
    fetch = _GatedFetch()
    coordinator = RefreshCoordinator(fetch, name="test")

    coordinator.request()
    await asyncio.sleep(0)
    await coordinator.aclose()

    assert coordinator.running is False
    await coordinator.wait_idle()
