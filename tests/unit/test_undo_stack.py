from __future__ import annotations

import pytest

from location_grid.grid.undo_stack import UndoStack
from location_grid.models.undo_entry import RowSnapshot, UndoEntry, UndoKind


def _entry(*keys: str) -> UndoEntry:
    return UndoEntry(UndoKind.CELL_EDIT, tuple(RowSnapshot(key=k, values={"city": k}) for k in keys))


def test_push_pop_lifo():
    stack = UndoStack(5)
    a, b = _entry("a"), _entry("b")
    stack.push(a)
    stack.push(b)
    assert stack.peek() is b
    assert stack.pop() is b
    assert stack.pop() is a
    assert stack.pop() is None


def test_eviction_drops_oldest():
    stack = UndoStack(3)
    entries = [_entry(str(i)) for i in range(4)]
    for e in entries:
        stack.push(e)
    assert stack.size() == 3
    popped = [stack.pop(), stack.pop(), stack.pop()]
    assert popped == [entries[3], entries[2], entries[1]]
    assert not stack


def test_invalid_depth():
    with pytest.raises(ValueError):
        UndoStack(0)


def test_clear():
    stack = UndoStack()
    stack.push(_entry("a"))
    stack.clear()
    assert len(stack) == 0


def test_discard_whole_entry_and_partial_rows():
    stack = UndoStack()
    single, multi = _entry("a"), _entry("b", "c")
    stack.push(single)
    stack.push(multi)

    assert stack.discard(single.entry_id) is True
    assert stack.size() == 1

    stack.discard(multi.entry_id, keys=["b"])
    remaining = stack.peek()
    assert remaining is not None
    assert remaining.entry_id == multi.entry_id
    assert remaining.row_keys == ["c"]

    stack.discard(multi.entry_id, keys=["c"])
    assert stack.size() == 0
    assert stack.discard(12345) is False


def test_remap_key_rewrites_snapshots():
    stack = UndoStack()
    entry = _entry("tmp-1", "x")
    stack.push(entry)
    stack.remap_key("tmp-1", "100")
    remapped = stack.peek()
    assert remapped.row_keys == ["100", "x"]
    assert remapped.entry_id == entry.entry_id
    assert remapped.inverse[0].values == {"city": "tmp-1"}


def test_drop_row_removes_empty_entries():
    stack = UndoStack()
    stack.push(_entry("a"))
    stack.push(_entry("a", "b"))
    stack.drop_row("a")
    assert stack.size() == 1
    assert stack.peek().row_keys == ["b"]


def test_snapshot_copies_values():
    values = {"city": "Austin"}
    snap = RowSnapshot.capture("1", 0, values)
    values["city"] = "Dallas"
    assert snap.values == {"city": "Austin"}


def test_carry_prior_retargets_next_edit_of_cell():
    stack = UndoStack(5)
    first = UndoEntry(UndoKind.CELL_EDIT, (RowSnapshot(key="1", values={"city": "Austin"}),))
    other = UndoEntry(UndoKind.CELL_EDIT, (RowSnapshot(key="2", values={"city": "Boise"}),))
    second = UndoEntry(UndoKind.CELL_EDIT, (RowSnapshot(key="1", values={"city": "A", "state": "TX"}),))
    for e in (first, other, second):
        stack.push(e)

    assert stack.carry_prior(first.entry_id, "1", "city", "A", "Austin") is True
    assert stack.peek().entry_id == second.entry_id
    assert stack.peek().inverse[0].values == {"city": "Austin", "state": "TX"}
    # 既に書き換え済み: 失敗した値を戻す取消エントリはもうない
    assert stack.carry_prior(first.entry_id, "1", "city", "A", "Austin") is False
    assert other.inverse[0].values == {"city": "Boise"}
