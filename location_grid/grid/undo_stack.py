from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import Any

from location_grid.models.undo_entry import UndoEntry

"""Bounded undo stack.

push() beyond capacity evicts the oldest entry and never raises. pop() on an
empty stack returns None ("nothing to undo") so callers can simply disable
their undo action.
"""

__all__ = [
    "UndoStack",
    "DEFAULT_UNDO_DEPTH",
]

DEFAULT_UNDO_DEPTH = 50


class UndoStack:
    def __init__(self, max_depth: int = DEFAULT_UNDO_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}")
        self.max_depth = max_depth
        # deque(maxlen) drops from the left (oldest) on overflow
        self._entries: deque[UndoEntry] = deque(maxlen=max_depth)

    def push(self, entry: UndoEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> UndoEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> UndoEntry | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def discard(self, entry_id: int, keys: list[str] | None = None) -> bool:
        """Remove one entry wherever it sits (e.g. its mutation failed remotely).

        With keys, only those rows' snapshots are removed; the entry goes away
        once it has none left.
        """
        for index, entry in enumerate(self._entries):
            if entry.entry_id != entry_id:
                continue
            remaining = tuple(s for s in entry.inverse if keys is not None and s.key not in keys)
            if remaining:
                self._entries[index] = UndoEntry(
                    kind=entry.kind,
                    inverse=remaining,
                    description=entry.description,
                    entry_id=entry.entry_id,
                )
            else:
                del self._entries[index]
            return True
        return False

    def remap_key(self, old_key: str, new_key: str) -> None:
        """Rewrite snapshots after a temporary key was replaced by the store key."""
        for i, entry in enumerate(self._entries):
            if old_key not in entry.row_keys:
                continue
            inverse = tuple(s.with_key(new_key) if s.key == old_key else s for s in entry.inverse)
            self._entries[i] = UndoEntry(
                kind=entry.kind,
                inverse=inverse,
                description=entry.description,
                entry_id=entry.entry_id,
            )

    def drop_row(self, key: str) -> None:
        """Forget snapshots of a row that no longer exists remotely.

        Entries left with no snapshots are removed entirely.
        """
        for entry in list(self._entries):
            if key not in entry.row_keys:
                continue
            remaining = tuple(s for s in entry.inverse if s.key != key)
            index = self._entries.index(entry)
            if remaining:
                self._entries[index] = UndoEntry(
                    kind=entry.kind,
                    inverse=remaining,
                    description=entry.description,
                    entry_id=entry.entry_id,
                )
            else:
                del self._entries[index]

    def carry_prior(self, entry_id: int, key: str, column: str, written: Any, prior: Any) -> bool:
        """Retarget the next edit of a cell after an older edit of it failed.

        The first entry newer than entry_id that edits (key, column) restores
        the value the failed edit wrote; it is rewritten to restore prior
        instead. Returns False when no such entry is on the stack.
        """
        for index, entry in enumerate(self._entries):
            if entry.entry_id <= entry_id:
                continue
            hit = next((s for s in entry.inverse if s.key == key and column in s.values), None)
            if hit is None:
                continue
            if hit.values[column] != written:
                return False
            inverse = tuple(
                replace(s, values={**s.values, column: prior}) if s is hit else s for s in entry.inverse
            )
            self._entries[index] = UndoEntry(
                kind=entry.kind,
                inverse=inverse,
                description=entry.description,
                entry_id=entry.entry_id,
            )
            return True
        return False
