from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any

from cdprun.errors import ProtocolExecutionError


_message_id = itertools.count(1)


@dataclass(slots=True)
class CdpRequest:
    method: str
    params: dict[str, Any] | None = None
    id: int | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "method": self.method,
        }
        if self.params is not None:
            payload["params"] = self.params
        if self.session_id is not None:
            payload["sessionId"] = self.session_id
        return payload


class CdpError(ProtocolExecutionError):
    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"CDP error {code}: {message}")


def next_id() -> int:
    return next(_message_id)


def build_request(
    method: str,
    params: dict[str, Any] | None = None,
    session_id: str | None = None,
) -> CdpRequest:
    return CdpRequest(method=method, params=params, id=next_id(), session_id=session_id)


def is_response(payload: dict[str, Any]) -> bool:
    return "id" in payload and ("result" in payload or "error" in payload)


def is_event(payload: dict[str, Any]) -> bool:
    return "method" in payload and "id" not in payload


def extract_result(payload: dict[str, Any]) -> dict[str, Any]:
    if "error" in payload:
        err = payload["error"]
        raise CdpError(
            code=err.get("code", -32000),
            message=err.get("message", "Unknown CDP error"),
            data=err.get("data"),
        )
    return payload.get("result") or {}
