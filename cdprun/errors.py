from __future__ import annotations

from typing import Any


class CdpRunnerError(Exception):
    pass


class RemoteModeNotImplementedError(CdpRunnerError, NotImplementedError):
    def __init__(self, remote: str) -> None:
        self.remote = remote
        super().__init__(f"remote connect mode is planned, but not yet implemented: {remote!r}")


class UnknownActionError(CdpRunnerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown action: {name!r}")


class MissingArgumentError(CdpRunnerError):
    def __init__(self, action: str, key: str) -> None:
        self.action = action
        self.key = key
        super().__init__(f"invalid action: {action}: arg '{key}' not found")


class NilArgumentError(CdpRunnerError):
    def __init__(self, action: str, key: str) -> None:
        self.action = action
        self.key = key
        super().__init__(f"invalid action arg: {action}.{key} = None")


class InvalidArgumentError(CdpRunnerError):
    def __init__(self, action: str, reason: str, key: str | None = None) -> None:
        self.action = action
        self.key = key
        if key is None:
            super().__init__(f"invalid action: {action}: {reason}")
        else:
            super().__init__(f"invalid action arg: {action}.{key}: {reason}")


class MalformedResultError(CdpRunnerError):
    def __init__(self, action: str, result: Any) -> None:
        self.action = action
        self.result = result
        super().__init__(f"invalid action: {action}: unexpected result {type(result).__name__}")


class ProtocolExecutionError(CdpRunnerError):
    pass


class SessionClosedError(ProtocolExecutionError):
    def __init__(self, message: str = "CDP session closed") -> None:
        super().__init__(message)


class ActionFailedError(CdpRunnerError):
    """A batch stopped at ``index``; ``cause`` holds the typed error."""

    def __init__(self, index: int, cause: CdpRunnerError) -> None:
        self.index = index
        self.cause = cause
        super().__init__(f"actions[{index}] error: {cause}")
