from __future__ import annotations

import logging
from typing import Any, Protocol

from cdprun.browser.actions import ActionRequest

logger = logging.getLogger(__name__)


class Capturer(Protocol):
    def capture_cdp_start(self, name: str) -> None: ...

    def capture_cdp_end(self, name: str) -> None: ...

    def capture_cdp_action(self, action: ActionRequest) -> None: ...

    def capture_cdp_response(self, action: ActionRequest, values: dict[str, Any]) -> None: ...


class Recorder(Protocol):
    def record(self, values: dict[str, Any]) -> None: ...


class Capturers(list):
    def capture_cdp_start(self, name: str) -> None:
        for capturer in self:
            capturer.capture_cdp_start(name)

    def capture_cdp_end(self, name: str) -> None:
        for capturer in self:
            capturer.capture_cdp_end(name)

    def capture_cdp_action(self, action: ActionRequest) -> None:
        for capturer in self:
            capturer.capture_cdp_action(action)

    def capture_cdp_response(self, action: ActionRequest, values: dict[str, Any]) -> None:
        for capturer in self:
            capturer.capture_cdp_response(action, values)


def summarize(values: dict[str, Any]) -> dict[str, Any]:
    """Replace byte payloads with their length for display."""
    return {
        key: f"<{len(value)} bytes>" if isinstance(value, (bytes, bytearray)) else value
        for key, value in values.items()
    }


class LoggingCapturer:
    def capture_cdp_start(self, name: str) -> None:
        logger.info(f"[{name}] cdp batch start")

    def capture_cdp_end(self, name: str) -> None:
        logger.info(f"[{name}] cdp batch end")

    def capture_cdp_action(self, action: ActionRequest) -> None:
        logger.info(f"cdp action: {action.name} {action.args}")

    def capture_cdp_response(self, action: ActionRequest, values: dict[str, Any]) -> None:
        logger.info(f"cdp response: {action.name} {summarize(values)}")


class MemoryRecorder:
    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def record(self, values: dict[str, Any]) -> None:
        self.records.append(values)

    @property
    def latest(self) -> dict[str, Any] | None:
        return self.records[-1] if self.records else None
