from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from cdprun.errors import SessionClosedError

logger = logging.getLogger(__name__)


class ChromeProcess:
    def __init__(self, command: str, args: list[str]) -> None:
        self.command = command
        self.args = args
        self._process: asyncio.subprocess.Process | None = None

    async def start(self) -> None:
        self._process = await asyncio.create_subprocess_exec(
            self.command,
            *self.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.info(f"Launched browser pid={self._process.pid}: {self.command}")

    async def stop(self) -> None:
        if self._process is None:
            return
        process = self._process
        self._process = None
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(process.wait(), timeout=5)
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                with contextlib.suppress(asyncio.CancelledError, TimeoutError):
                    await asyncio.wait_for(process.wait(), timeout=5)
        logger.info(f"Stopped browser pid={process.pid}")


class WebSocketTransport:
    def __init__(self, url: str) -> None:
        self.url = url
        self._connection: Any = None

    async def connect(self) -> None:
        try:
            self._connection = await websockets.connect(self.url, max_size=None)
        except (OSError, WebSocketException) as exc:
            raise SessionClosedError(f"CDP connect failed: {exc}") from exc

    async def close(self) -> None:
        if self._connection is None:
            return
        connection = self._connection
        self._connection = None
        with contextlib.suppress(Exception):
            await connection.close()

    async def send(self, payload: dict[str, Any]) -> None:
        if self._connection is None:
            raise SessionClosedError("Transport is not connected")
        try:
            await self._connection.send(json.dumps(payload, ensure_ascii=False))
        except (OSError, WebSocketException) as exc:
            raise SessionClosedError(f"CDP transport closed: {exc}") from exc

    async def recv(self) -> dict[str, Any]:
        if self._connection is None:
            raise SessionClosedError("Transport is not connected")
        try:
            raw = await self._connection.recv()
        except (OSError, WebSocketException) as exc:
            raise SessionClosedError(f"CDP transport closed: {exc}") from exc
        return json.loads(raw)
