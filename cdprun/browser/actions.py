from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class ActionRequest:
    name: str
    args: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, step: dict[str, Any]) -> ActionRequest:
        name = step.get("name", step.get("fn"))
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"action has no name: {step!r}")
        args = step.get("args") or {}
        if not isinstance(args, dict):
            raise ValueError(f"action args must be a mapping: {step!r}")
        return cls(name=name.strip(), args=dict(args))


def load_batch(steps: list[dict[str, Any]]) -> list[ActionRequest]:
    return [ActionRequest.from_dict(step) for step in steps]


def load_batch_file(path: str | Path) -> list[ActionRequest]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("actions", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of actions")
    return load_batch(data)
