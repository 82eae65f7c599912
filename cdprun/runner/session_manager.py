from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from cdprun.browser.tasks import Operation, TargetContext
from cdprun.cdp_client.allocator import AllocatorOptions
from cdprun.cdp_client.browser import Browser, TargetInfo

logger = logging.getLogger(__name__)


class BrowserHandle(Protocol):
    @property
    def closed(self) -> bool: ...

    async def targets(self) -> list[TargetInfo]: ...

    async def attach(self, target_id: str) -> Any: ...

    async def new_page(self) -> str: ...

    async def close(self) -> None: ...


Launcher = Callable[[AllocatorOptions], Awaitable[BrowserHandle]]


class BrowserSession:
    """One live browser plus the target operations currently run against."""

    def __init__(self, browser: BrowserHandle, target: TargetContext, options: AllocatorOptions) -> None:
        self.browser = browser
        self.target = target
        self.options = options

    @property
    def closed(self) -> bool:
        return self.browser.closed

    async def run(self, operations: Sequence[Operation]) -> None:
        for operation in operations:
            await operation.do(self.target)

    async def targets(self) -> list[TargetInfo]:
        return await self.browser.targets()

    async def switch_to(self, target_id: str) -> None:
        self.target = await self.browser.attach(target_id)
        logger.debug(f"Switched working target to {target_id}")

    async def close(self) -> None:
        await self.browser.close()


class SessionManager:
    def __init__(self, launch: Launcher = Browser.launch) -> None:
        self.launch = launch

    async def open(self, options: AllocatorOptions) -> BrowserSession:
        browser = await self.launch(options)
        try:
            targets = await browser.targets()
            target_id = targets[0].target_id if targets else await browser.new_page()
            target = await browser.attach(target_id)
        except Exception:
            await browser.close()
            raise
        return BrowserSession(browser, target, options)

    async def close(self, session: BrowserSession) -> None:
        await session.close()

    async def renew(self, session: BrowserSession) -> BrowserSession:
        await self.close(session)
        return await self.open(session.options)
