from __future__ import annotations

import logging
import os
from typing import Any

from cdprun.browser.actions import ActionRequest
from cdprun.browser.registry import ActionRegistry, ArgDirection, ArgSlot
from cdprun.browser.tasks import Operation
from cdprun.errors import (
    InvalidArgumentError,
    MalformedResultError,
    MissingArgumentError,
    NilArgumentError,
)
from cdprun.runner.store import Store

logger = logging.getLogger(__name__)

UPLOAD_FILE_ACTION = "setUploadFile"
UPLOAD_FILE_PATH_KEY = "path"


class ActionDispatcher:
    """Turns one action request into protocol operations.

    Input slots are bound from the request arguments; output slots get a fresh
    cell from the store, which the operation fills while it runs.
    """

    def __init__(self, registry: ActionRegistry, root: str) -> None:
        self.registry = registry
        self.root = root

    def resolve_operations(self, request: ActionRequest, store: Store) -> list[Operation]:
        name, descriptor = self.registry.resolve(request.name)
        if descriptor.control or descriptor.fn is None:
            raise MalformedResultError(name, None)

        values = [self._bind(name, slot, request.args, store) for slot in descriptor.slots]
        try:
            result = descriptor.fn(*values)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(name, str(exc)) from exc
        return self._normalize(name, result)

    def _bind(self, name: str, slot: ArgSlot, args: dict[str, Any], store: Store) -> Any:
        if slot.direction is ArgDirection.OUTPUT:
            if slot.shape is None:
                raise MalformedResultError(name, slot)
            return store.allocate(slot.key, slot.shape)

        if slot.key not in args:
            raise MissingArgumentError(name, slot.key)
        value = args[slot.key]
        if value is None:
            raise NilArgumentError(name, slot.key)
        if name == UPLOAD_FILE_ACTION and slot.key == UPLOAD_FILE_PATH_KEY:
            return self._resolve_path(name, value)
        return value

    def _resolve_path(self, name: str, path: Any) -> str:
        if not isinstance(path, str):
            raise InvalidArgumentError(name, f"expected a string, got {type(path).__name__}", UPLOAD_FILE_PATH_KEY)
        if os.path.isabs(path):
            return path
        resolved = os.path.join(self.root, path)
        logger.debug(f"Resolved upload path {path} -> {resolved}")
        return resolved

    @staticmethod
    def _normalize(name: str, result: Any) -> list[Operation]:
        if isinstance(result, Operation):
            return [result]
        if isinstance(result, (list, tuple)) and all(isinstance(op, Operation) for op in result):
            return list(result)
        raise MalformedResultError(name, result)
