from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Protocol

from cdprun.errors import ProtocolExecutionError, SessionClosedError

from .message import CdpError, build_request, extract_result, is_event, is_response

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def send(self, payload: dict[str, Any]) -> None: ...

    async def recv(self) -> dict[str, Any]: ...


class CdpSession:
    def __init__(self, transport: Transport, timeout_seconds: float | None = None) -> None:
        self.transport = transport
        self.timeout_seconds = timeout_seconds
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._waiters: dict[tuple[str, str | None], list[asyncio.Future[dict[str, Any]]]] = {}
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()
        self._shut_down = False

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def start(self) -> None:
        await self.transport.connect()
        self._reader_task = asyncio.create_task(self._reader_loop())

    async def close(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._closed.set()
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await asyncio.wait_for(self._reader_task, timeout=2)
            self._reader_task = None
        self._fail_pending(SessionClosedError())
        await self.transport.close()

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        if self.closed:
            raise SessionClosedError()
        req = build_request(method, params, session_id)
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[dict[str, Any]] = loop.create_future()
        self._pending[req.id] = fut
        logger.debug(f"-> {req.id} {method} session={session_id}")
        try:
            await self.transport.send(req.to_dict())
            return await asyncio.wait_for(fut, timeout=self.timeout_seconds)
        except TimeoutError as exc:
            raise ProtocolExecutionError(f"timed out waiting for {method}") from exc
        finally:
            self._pending.pop(req.id, None)

    def wait_event(self, method: str, session_id: str | None = None) -> asyncio.Future[dict[str, Any]]:
        """Return a future resolved with the params of the next matching event.

        Register the waiter before sending the command that triggers the event.
        """
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        if self.closed:
            fut.set_exception(SessionClosedError())
            return fut
        self._waiters.setdefault((method, session_id), []).append(fut)
        return fut

    async def sleep(self, seconds: float) -> None:
        if self.closed:
            raise SessionClosedError()
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=max(seconds, 0))
        except TimeoutError:
            return
        raise SessionClosedError()

    async def _reader_loop(self) -> None:
        try:
            while True:
                message = await self.transport.recv()
                if is_response(message):
                    future = self._pending.pop(int(message["id"]), None)
                    if future is not None and not future.done():
                        try:
                            future.set_result(extract_result(message))
                        except CdpError as exc:
                            future.set_exception(exc)
                elif is_event(message):
                    self._dispatch_event(message)
        except SessionClosedError as exc:
            logger.debug(f"CDP reader stopped: {exc}")
            self._closed.set()
            self._fail_pending(exc)
        except Exception as exc:
            logger.exception("CDP reader failed")
            self._closed.set()
            self._fail_pending(SessionClosedError(f"CDP reader failed: {exc}"))

    def _dispatch_event(self, message: dict[str, Any]) -> None:
        key = (str(message.get("method", "")), message.get("sessionId"))
        waiters = self._waiters.pop(key, [])
        for fut in waiters:
            if not fut.done():
                fut.set_result(message.get("params", {}))

    def _fail_pending(self, exc: Exception) -> None:
        futures = list(self._pending.values())
        for waiters in self._waiters.values():
            futures.extend(waiters)
        self._pending.clear()
        self._waiters.clear()
        for fut in futures:
            if not fut.done():
                fut.set_exception(exc)
