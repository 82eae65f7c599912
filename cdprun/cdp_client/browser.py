from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from dataclasses import dataclass
from typing import Any

import httpx

from cdprun.errors import ProtocolExecutionError, SessionClosedError

from .allocator import AllocatorOptions, discover_websocket_url, find_chrome_executable, free_port
from .session import CdpSession
from .transport import ChromeProcess, WebSocketTransport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TargetInfo:
    target_id: str
    type: str
    title: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, info: dict[str, Any]) -> TargetInfo:
        return cls(
            target_id=str(info.get("targetId", "")),
            type=str(info.get("type", "")),
            title=str(info.get("title", "")),
            url=str(info.get("url", "")),
        )


@dataclass(slots=True)
class Target:
    """A page target attached through a flat CDP session."""

    session: CdpSession
    target_id: str
    session_id: str

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.session.send(method, params, self.session_id)

    def wait_event(self, method: str) -> asyncio.Future[dict[str, Any]]:
        return self.session.wait_event(method, self.session_id)

    async def sleep(self, seconds: float) -> None:
        await self.session.sleep(seconds)


class Browser:
    def __init__(self, process: ChromeProcess, user_data_dir: str) -> None:
        self.process = process
        self.user_data_dir = user_data_dir
        self.session: CdpSession | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @classmethod
    async def launch(cls, options: AllocatorOptions) -> Browser:
        executable = options.executable or find_chrome_executable()
        if not executable:
            raise ProtocolExecutionError("Chrome executable not found. Set CHROME_PATH or install Chrome/Chromium.")

        user_data_dir = tempfile.mkdtemp(prefix="cdprun-")
        port = free_port()
        browser = cls(ChromeProcess(executable, options.to_args(port, user_data_dir)), user_data_dir)
        try:
            await browser.process.start()
            url = await discover_websocket_url(port)
            browser.session = CdpSession(WebSocketTransport(url))
            await browser.session.start()
        except (OSError, httpx.HTTPError, KeyError) as exc:
            await browser.close()
            raise ProtocolExecutionError(f"browser launch failed: {exc}") from exc
        except ProtocolExecutionError:
            await browser.close()
            raise
        logger.info(f"Connected to browser at {url}")
        return browser

    async def targets(self) -> list[TargetInfo]:
        """Page targets in the order the browser reports them, newest first."""
        result = await self._session().send("Target.getTargets")
        infos = [TargetInfo.from_dict(info) for info in result.get("targetInfos", [])]
        return [info for info in infos if info.type == "page"]

    async def attach(self, target_id: str) -> Target:
        session = self._session()
        result = await session.send("Target.attachToTarget", {"targetId": target_id, "flatten": True})
        session_id = result.get("sessionId")
        if not session_id:
            raise ProtocolExecutionError(f"attach to {target_id} returned no sessionId")
        target = Target(session, target_id, str(session_id))
        await target.send("Page.enable")
        await target.send("Runtime.enable")
        logger.debug(f"Attached to target {target_id}")
        return target

    async def new_page(self) -> str:
        result = await self._session().send("Target.createTarget", {"url": "about:blank"})
        target_id = result.get("targetId")
        if not target_id:
            raise ProtocolExecutionError("createTarget returned no targetId")
        return str(target_id)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.session is not None:
            await self.session.close()
        await self.process.stop()
        shutil.rmtree(self.user_data_dir, ignore_errors=True)

    def _session(self) -> CdpSession:
        if self.session is None or self._closed:
            raise SessionClosedError("browser is closed")
        return self.session
