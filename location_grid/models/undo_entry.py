from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

"""Undo entry model.

An UndoEntry is a self-contained reversal record for one committed mutation
batch. Snapshots copy the field values at creation time, so replaying an entry
never depends on a mutable object that may have changed since.
"""

__all__ = [
    "UndoKind",
    "RowSnapshot",
    "UndoEntry",
]

_entry_ids = itertools.count(1)


class UndoKind(Enum):
    CELL_EDIT = "cell_edit"
    ROW_ADD = "row_add"
    ROW_DELETE = "row_delete"
    ROW_DUPLICATE = "row_duplicate"
    BULK_IMPORT = "bulk_import"


@dataclass(frozen=True)
class RowSnapshot:
    """Copy of (part of) a row at a point in time.

    Attributes:
        key: Row key at snapshot time (rewritten when a temp key is confirmed)
        index: Position in the dataset at snapshot time, -1 if irrelevant
        values: Field values to restore. For cell edits only the edited
            columns; for deletes the full field state.
    """
    key: str
    index: int = -1
    values: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def capture(key: str, index: int, values: dict[str, Any]) -> RowSnapshot:
        return RowSnapshot(key=key, index=index, values=dict(values))

    def with_key(self, key: str) -> RowSnapshot:
        return replace(self, key=key)


@dataclass(frozen=True)
class UndoEntry:
    kind: UndoKind
    inverse: tuple[RowSnapshot, ...]
    description: str = ""
    entry_id: int = field(default_factory=lambda: next(_entry_ids))

    @property
    def row_keys(self) -> list[str]:
        return [s.key for s in self.inverse]

    def __repr__(self) -> str:
        return f"UndoEntry({self.kind.value}, {len(self.inverse)} rows, id={self.entry_id})"
