from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from location_grid.grid.codec import to_display
from location_grid.models.column import ColumnDescriptor

"""Selection, focus and cell edit-mode handling.

SelectionModel tracks the single focused cell and the set of selected row
keys. Cell editing is a pure state machine: handle_cell_key() takes the
current CellEditState and a KeyEvent and returns the next state plus an
optional CommitEdit for the controller to apply.
"""

__all__ = [
    "SelectionModel",
    "KeyEvent",
    "CellEditState",
    "CommitEdit",
    "handle_cell_key",
    "begin_edit",
    "blur_cell",
    "move_focus",
    "focused_cell_text",
]

CellPosition = tuple[int, int]  # (row_index, col_index) on the visible page


class SelectionModel:
    """Focused cell + selected row keys.

    key_order returns the current dataset key order; select_range() uses it
    to resolve an inclusive range between two keys.
    """

    def __init__(self, key_order: Callable[[], Sequence[str]] | None = None) -> None:
        self._key_order = key_order or (lambda: ())
        self.focused_cell: CellPosition | None = None
        self.selected_keys: set[str] = set()

    def focus(self, row_index: int, col_index: int) -> None:
        if row_index < 0 or col_index < 0:
            raise ValueError(f"invalid cell position: ({row_index}, {col_index})")
        self.focused_cell = (row_index, col_index)

    def blur(self) -> None:
        self.focused_cell = None

    def is_selected(self, key: str) -> bool:
        return key in self.selected_keys

    def toggle_row_selection(self, key: str) -> None:
        if key in self.selected_keys:
            self.selected_keys.discard(key)
        else:
            self.selected_keys.add(key)

    def select_range(self, key_a: str, key_b: str) -> None:
        """Add every row between key_a and key_b (inclusive, dataset order)."""
        order = list(self._key_order())
        try:
            a = order.index(key_a)
            b = order.index(key_b)
        except ValueError as e:
            raise KeyError(f"row not in dataset: {e}") from e
        lo, hi = min(a, b), max(a, b)
        self.selected_keys.update(order[lo : hi + 1])

    def toggle_select_all(self, page_keys: Iterable[str]) -> None:
        """Select every row on the page, or deselect them if all already are."""
        keys = list(page_keys)
        if keys and all(k in self.selected_keys for k in keys):
            self.selected_keys.difference_update(keys)
        else:
            self.selected_keys.update(keys)

    def clear_selection(self) -> None:
        self.selected_keys.clear()

    def ordered_selection(self) -> list[str]:
        """Selected keys in dataset order."""
        return [k for k in self._key_order() if k in self.selected_keys]

    def remap_key(self, old_key: str, new_key: str) -> None:
        if old_key in self.selected_keys:
            self.selected_keys.discard(old_key)
            self.selected_keys.add(new_key)

    def forget(self, keys: Iterable[str]) -> None:
        self.selected_keys.difference_update(keys)


@dataclass(frozen=True)
class KeyEvent:
    key: str  # "a", "Enter", "Escape", "Tab", "ArrowUp", ...
    ctrl: bool = False
    meta: bool = False
    shift: bool = False

    @property
    def is_character(self) -> bool:
        return len(self.key) == 1 and not self.ctrl and not self.meta


@dataclass(frozen=True)
class CellEditState:
    committed: str  # Last committed display value
    editing: bool = False
    buffer: str = ""


@dataclass(frozen=True)
class CommitEdit:
    text: str


def _commit(state: CellEditState) -> tuple[CellEditState, CommitEdit | None]:
    done = CellEditState(committed=state.committed)
    if state.buffer != state.committed:
        return done, CommitEdit(state.buffer)
    return done, None


def begin_edit(state: CellEditState) -> CellEditState:
    """Double click / Enter: enter edit mode keeping the existing value."""
    if state.editing:
        return state
    return replace(state, editing=True, buffer=state.committed)


def blur_cell(state: CellEditState) -> tuple[CellEditState, CommitEdit | None]:
    if not state.editing:
        return state, None
    return _commit(state)


def handle_cell_key(state: CellEditState, event: KeyEvent) -> tuple[CellEditState, CommitEdit | None]:
    """Apply one key press to a focused cell."""
    if not state.editing:
        if event.is_character:
            # type-to-edit: 入力文字でバッファを初期化
            return replace(state, editing=True, buffer=event.key), None
        if event.key == "Enter":
            return begin_edit(state), None
        return state, None

    if event.key == "Escape":
        return CellEditState(committed=state.committed), None
    if event.key in ("Enter", "Tab"):
        return _commit(state)
    if event.key == "Backspace":
        return replace(state, buffer=state.buffer[:-1]), None
    if event.is_character:
        return replace(state, buffer=state.buffer + event.key), None
    return state, None


def move_focus(
    focused: CellPosition | None,
    event: KeyEvent,
    n_rows: int,
    n_cols: int,
) -> CellPosition | None:
    """Keyboard navigation between cells of the visible page.

    Arrow keys clamp at the edges; Tab / Shift+Tab wrap to the next /
    previous row. Returns the new position (unchanged for other keys).
    """
    if focused is None or n_rows <= 0 or n_cols <= 0:
        return focused
    row, col = focused
    key = event.key
    if key == "ArrowUp":
        row = max(0, row - 1)
    elif key == "ArrowDown":
        row = min(n_rows - 1, row + 1)
    elif key == "ArrowLeft":
        col = max(0, col - 1)
    elif key == "ArrowRight":
        col = min(n_cols - 1, col + 1)
    elif key == "Tab":
        if event.shift:
            col -= 1
            if col < 0:
                col = n_cols - 1
                row = max(0, row - 1)
        else:
            col += 1
            if col >= n_cols:
                col = 0
                row = min(n_rows - 1, row + 1)
    return (row, col)


def focused_cell_text(
    focused: CellPosition | None,
    page_rows: Sequence[Any],
    columns: Sequence[ColumnDescriptor],
    *,
    display: bool = False,
) -> str:
    """Plain text of the focused cell for copying to the clipboard."""
    if focused is None:
        return ""
    row_index, col_index = focused
    if row_index >= len(page_rows) or col_index >= len(columns):
        return ""
    column = columns[col_index]
    value = page_rows[row_index].get(column.key)
    if display:
        return to_display(value, column)
    return "" if value is None else str(value)
