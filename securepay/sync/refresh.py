"""
Refresh coalescing for change-feed notifications.

A burst of notifications must not turn into a burst of full re-queries. The
coordinator keeps at most one fetch in flight per list; notifications that
arrive meanwhile only mark the list dirty, and exactly one follow-up fetch
runs once the current one finishes.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from securepay.utils.logging import get_logger

log = get_logger(__name__)


class RefreshCoordinator:
    """
    Run `fetch` in response to `request()` calls, coalescing bursts.

    Parameters
    ----------
    fetch : Callable[[], Awaitable[object]]
        Re-queries the store and applies the result. Expected to handle its
        own store errors; anything that escapes is logged here.
    name : str
        Label used in log records.
    """

    def __init__(self, fetch: Callable[[], Awaitable[object]], name: str = "refresh") -> None:
        self._fetch = fetch
        self.name = name
        self._task: Optional[asyncio.Task[None]] = None
        self._dirty = False
        self.requests = 0
        self.fetches = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self) -> None:
        """Ask for a refresh. Must be called from the event loop thread."""
        self.requests += 1
        if self.running:
            self._dirty = True
            return
        self._dirty = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"refresh:{self.name}")

    async def _run(self) -> None:
        while True:
            self._dirty = False
            self.fetches += 1
            try:
                await self._fetch()
            except Exception:  # noqa: BLE001 - keep the watcher alive
                log.exception("[REFRESH FAILED]", extra={"list": self.name})
            if not self._dirty:
                return
            log.debug("[REFRESH] coalesced follow-up", extra={"list": self.name})

    async def wait_idle(self) -> None:
        """Wait until no fetch is running and none is queued."""
        while self.running:
            assert self._task is not None
            await asyncio.shield(self._task)

    async def aclose(self) -> None:
        """Cancel an in-flight fetch, if any."""
        task, self._task = self._task, None
        self._dirty = False
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


__all__ = ["RefreshCoordinator"]
