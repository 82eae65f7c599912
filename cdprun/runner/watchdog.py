from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType

logger = logging.getLogger(__name__)


class Watchdog:
    """Runs ``on_timeout`` once if the batch is still running after ``timeout`` seconds."""

    def __init__(self, timeout: float, on_timeout: Callable[[], Awaitable[None]]) -> None:
        self.timeout = timeout
        self.on_timeout = on_timeout
        self.fired = False
        self._done = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def arm(self) -> None:
        if self._task is not None:
            raise RuntimeError("watchdog already armed")
        self._task = asyncio.create_task(self._watch())

    async def disarm(self) -> None:
        self._done.set()
        if self._task is None:
            return
        task = self._task
        self._task = None
        # Once fired, let the close finish instead of interrupting it.
        if not task.done() and not self.fired:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _watch(self) -> None:
        try:
            await asyncio.wait_for(self._done.wait(), timeout=self.timeout)
        except TimeoutError:
            pass
        if self._done.is_set():
            return
        self.fired = True
        logger.warning(f"Batch exceeded {self.timeout}s, closing the session")
        try:
            await self.on_timeout()
        except Exception:
            logger.exception("Watchdog failed to close the session")

    async def __aenter__(self) -> Watchdog:
        self.arm()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disarm()
