from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OutputShape(str, Enum):
    SCALAR = "scalar"
    STRING_MAP = "string_map"
    BYTES = "bytes"


@dataclass(slots=True)
class ScalarCell:
    value: str = ""

    def deref(self) -> str:
        return self.value


@dataclass(slots=True)
class StringMapCell:
    value: dict[str, str] = field(default_factory=dict)

    def deref(self) -> dict[str, str]:
        return dict(self.value)


@dataclass(slots=True)
class BytesCell:
    value: bytes = b""

    def deref(self) -> bytes:
        return bytes(self.value)


Cell = ScalarCell | StringMapCell | BytesCell

_CELL_TYPES: dict[OutputShape, type[ScalarCell] | type[StringMapCell] | type[BytesCell]] = {
    OutputShape.SCALAR: ScalarCell,
    OutputShape.STRING_MAP: StringMapCell,
    OutputShape.BYTES: BytesCell,
}


def new_cell(shape: OutputShape) -> Cell:
    return _CELL_TYPES[shape]()


class Store:
    """Output destinations of the current batch, keyed by output slot key."""

    def __init__(self) -> None:
        self._cells: dict[str, Cell] = {}

    def allocate(self, key: str, shape: OutputShape) -> Cell:
        # A key reused later in the same batch replaces the earlier cell.
        cell = new_cell(shape)
        self._cells[key] = cell
        return cell

    def __getitem__(self, key: str) -> Cell:
        return self._cells[key]

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def keys(self) -> list[str]:
        return list(self._cells)

    def snapshot(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: self._cells[key].deref() for key in keys}

    def drain(self) -> dict[str, Any]:
        return {key: cell.deref() for key, cell in self._cells.items()}

    def clear(self) -> None:
        self._cells.clear()
