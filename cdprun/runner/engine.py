from __future__ import annotations

import functools
import logging
import os
from collections.abc import Sequence
from types import TracebackType

from cdprun.browser.actions import ActionRequest
from cdprun.browser.registry import DEFAULT_REGISTRY, LATEST_TAB, ActionRegistry
from cdprun.browser.tasks import emulate_viewport
from cdprun.cdp_client.allocator import apply_environment, default_allocator_options
from cdprun.errors import (
    ActionFailedError,
    CdpRunnerError,
    ProtocolExecutionError,
    RemoteModeNotImplementedError,
)
from cdprun.runner.capture import Capturer, Capturers, MemoryRecorder, Recorder
from cdprun.runner.dispatcher import ActionDispatcher
from cdprun.runner.session_manager import BrowserSession, SessionManager
from cdprun.runner.store import Store
from cdprun.runner.watchdog import Watchdog

logger = logging.getLogger(__name__)

CDP_NEW_KEY = "new"

CDP_TIMEOUT_BY_STEP = 60.0
CDP_WINDOW_WIDTH = 1920
CDP_WINDOW_HEIGHT = 1080


class CdpRunner:
    def __init__(
        self,
        name: str,
        session: BrowserSession,
        *,
        manager: SessionManager,
        capturers: Capturers,
        recorder: Recorder,
        root: str,
        registry: ActionRegistry = DEFAULT_REGISTRY,
        timeout: float = CDP_TIMEOUT_BY_STEP,
    ) -> None:
        self.name = name
        self.session = session
        self.manager = manager
        self.capturers = capturers
        self.recorder = recorder
        self.registry = registry
        self.timeout = timeout
        self.store = Store()
        self.dispatcher = ActionDispatcher(registry, root)

    @classmethod
    async def create(
        cls,
        name: str,
        remote: str = CDP_NEW_KEY,
        *,
        capturers: Sequence[Capturer] = (),
        recorder: Recorder | None = None,
        root: str | None = None,
        registry: ActionRegistry = DEFAULT_REGISTRY,
        manager: SessionManager | None = None,
        timeout: float = CDP_TIMEOUT_BY_STEP,
    ) -> CdpRunner:
        if remote != CDP_NEW_KEY:
            raise RemoteModeNotImplementedError(remote)

        options = apply_environment(default_allocator_options(CDP_WINDOW_WIDTH, CDP_WINDOW_HEIGHT))
        manager = manager or SessionManager()
        session = await manager.open(options)
        return cls(
            name,
            session,
            manager=manager,
            capturers=Capturers(capturers),
            recorder=recorder if recorder is not None else MemoryRecorder(),
            root=root or os.getcwd(),
            registry=registry,
            timeout=timeout,
        )

    async def run(self, batch: Sequence[ActionRequest]) -> None:
        self.store = Store()
        self.capturers.capture_cdp_start(self.name)
        # Chrome operations can hang depending on the actions, so the whole
        # batch is bounded; the watchdog only ever closes this session.
        session = self.session
        watchdog = Watchdog(self.timeout, functools.partial(self.manager.close, session))
        watchdog.arm()
        try:
            await session.run([emulate_viewport(CDP_WINDOW_WIDTH, CDP_WINDOW_HEIGHT)])
            for i, action in enumerate(batch):
                try:
                    await self._run_action(action)
                except CdpRunnerError as exc:
                    raise ActionFailedError(i, exc) from exc
            self.recorder.record(self.store.drain())
            logger.info(f"[{self.name}] ran {len(batch)} cdp actions")
        finally:
            self.store = Store()
            await watchdog.disarm()
            self.capturers.capture_cdp_end(self.name)

    async def _run_action(self, action: ActionRequest) -> None:
        name, descriptor = self.registry.resolve(action.name)
        if name == LATEST_TAB:
            await self._switch_to_latest_tab()
            return

        self.capturers.capture_cdp_action(action)
        operations = self.dispatcher.resolve_operations(action, self.store)
        await self.session.run(operations)

        outputs = descriptor.output_slots()
        if outputs:
            values = self.store.snapshot(slot.key for slot in outputs)
            self.capturers.capture_cdp_response(action, values)

    async def _switch_to_latest_tab(self) -> None:
        targets = await self.session.targets()
        if not targets:
            raise ProtocolExecutionError("no page target to switch to")
        await self.session.switch_to(targets[0].target_id)

    async def renew(self) -> None:
        self.session = await self.manager.renew(self.session)
        self.store = Store()

    async def close(self) -> None:
        await self.manager.close(self.session)

    async def __aenter__(self) -> CdpRunner:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
