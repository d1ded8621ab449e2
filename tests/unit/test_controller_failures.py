from __future__ import annotations

import pytest

from location_grid.db.store import PersistenceError
from location_grid.logging.error_log import ErrorLogBuffer
from location_grid.models.command import CommandOp
from location_grid.services.dispatcher import dispatch, execute_command

"""Out-of-order results, remote failures and conflicts."""

ORG_ID = "org-1"


def _boom(*args, **kwargs):
    raise PersistenceError("connection reset")


def test_update_failure_rolls_back_and_drops_undo_entry(controller, store, monkeypatch):
    monkeypatch.setattr(store, "update", _boom)
    error_log = ErrorLogBuffer()
    result = dispatch(controller, store, controller.edit_cell("1", "city", "Reno"), error_log=error_log)

    assert result.failed == 1 and not result.ok
    assert controller.row("1").get("city") == "Austin"
    assert controller.undo_stack.size() == 0
    assert not controller.is_pending("1", "city")

    failure = controller.failures[-1]
    assert failure.error_type == "UPDATE_FAILED"
    assert failure.rolled_back is True
    assert "connection reset" in failure.message

    (record,) = error_log.records
    assert (record.entity, record.row_key, record.column) == ("locations", "1", "city")


def test_out_of_order_confirm_issues_corrective_update(controller, store):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")

    controller.confirm(second, execute_command(store, second))
    # the older write lands last on the store
    followups = controller.confirm(first, execute_command(store, first))
    assert store.get("locations", "1")["city"] == "A"

    assert len(followups) == 1
    correction = followups[0]
    assert correction.op is CommandOp.UPDATE
    assert correction.payload == ({"city": "B"},)
    assert correction.version > second.version

    dispatch(controller, store, followups)
    assert controller.row("1").get("city") == "B"
    assert store.get("locations", "1")["city"] == "B"
    assert not controller.has_pending


def test_in_order_confirms_need_no_correction(controller, store):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")
    assert controller.confirm(first, execute_command(store, first)) == []
    assert controller.confirm(second, execute_command(store, second)) == []


def test_failure_of_superseded_write_keeps_newer_value(controller):
    (first,) = controller.edit_cell("1", "city", "A")
    controller.edit_cell("1", "city", "B")

    controller.fail(first, PersistenceError("timeout"))
    assert controller.row("1").get("city") == "B"
    assert controller.failures[-1].rolled_back is False
    # only the newer edit remains undoable
    assert controller.undo_stack.size() == 1
    assert controller.is_pending("1", "city")


def test_both_overlapping_writes_fail_restores_original(controller):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")

    controller.fail(first, PersistenceError("timeout"))
    controller.fail(second, PersistenceError("timeout"))
    assert controller.row("1").get("city") == "Austin"
    assert not controller.is_pending("1", "city")
    assert controller.undo_stack.size() == 0


def test_newer_write_failing_first_defers_to_older_write(controller, store):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")

    controller.fail(second, PersistenceError("timeout"))
    assert controller.row("1").get("city") == "A"
    assert controller.is_pending("1", "city")

    controller.fail(first, PersistenceError("timeout"))
    assert controller.row("1").get("city") == "Austin"
    assert not controller.has_pending


def test_newer_write_failing_first_then_older_confirmed(controller, store):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")

    controller.fail(second, PersistenceError("timeout"))
    assert controller.confirm(first, execute_command(store, first)) == []
    assert controller.row("1").get("city") == "A"
    assert store.get("locations", "1")["city"] == "A"
    assert not controller.has_pending


def test_undo_after_superseded_failure_skips_unsaved_value(controller, store):
    (first,) = controller.edit_cell("1", "city", "A")
    (second,) = controller.edit_cell("1", "city", "B")

    controller.fail(first, PersistenceError("timeout"))
    controller.confirm(second, execute_command(store, second))

    (undo,) = controller.undo()
    assert controller.row("1").get("city") == "Austin"
    assert undo.payload == ({"city": "Austin"},)
    dispatch(controller, store, [undo])
    assert store.get("locations", "1")["city"] == "Austin"


def test_stale_row_is_removed_locally(controller, store):
    store.delete("locations", ORG_ID, ["2"])  # deleted in another session
    result = dispatch(controller, store, controller.edit_cell("2", "city", "X"))

    assert result.failed == 1
    failure = controller.failures[-1]
    assert failure.error_type == "STALE_ROW"
    assert failure.removed_rows == ("2",)
    assert controller.row("2") is None
    assert controller.undo_stack.size() == 0


def test_insert_failure_removes_rows(controller, store, monkeypatch):
    monkeypatch.setattr(store, "insert", _boom)
    commands = controller.bulk_import([{"location_name": "A"}, {"location_name": "B"}])
    assert len(controller.rows) == 5

    dispatch(controller, store, commands)
    assert len(controller.rows) == 3
    assert controller.undo_stack.size() == 0
    assert controller.failures[-1].error_type == "INSERT_FAILED"
    assert controller.failures[-1].rolled_back is True


def test_insert_failure_drops_held_edits(controller, store, monkeypatch):
    monkeypatch.setattr(store, "insert", _boom)
    commands = controller.add_row()
    temp_key = commands[0].row_keys[0]
    controller.edit_cell(temp_key, "city", "Reno")

    result = dispatch(controller, store, commands)
    assert result.total_calls == 1
    assert not controller.has_pending
    assert controller.undo_stack.size() == 0


def test_delete_failure_restores_rows(controller, store, monkeypatch):
    monkeypatch.setattr(store, "delete", _boom)
    dispatch(controller, store, controller.delete_rows(["2"]))

    assert controller.keys() == ["1", "2", "3"]
    assert controller.row("2").get("location_name") == "Warehouse"
    assert controller.undo_stack.size() == 0
    assert controller.failures[-1].error_type == "DELETE_FAILED"


def test_failed_undo_can_be_retried(controller, store, monkeypatch):
    dispatch(controller, store, controller.edit_cell("1", "city", "Reno"))

    with monkeypatch.context() as m:
        m.setattr(store, "update", _boom)
        dispatch(controller, store, controller.undo())
    assert controller.row("1").get("city") == "Reno"
    assert controller.undo_stack.size() == 1

    dispatch(controller, store, controller.undo())
    assert controller.row("1").get("city") == "Austin"
    assert store.get("locations", "1")["city"] == "Austin"


def test_failed_undo_of_delete_can_be_retried(controller, store, monkeypatch):
    dispatch(controller, store, controller.delete_rows(["2"]))
    with monkeypatch.context() as m:
        m.setattr(store, "insert", _boom)
        dispatch(controller, store, controller.undo())
    assert controller.row("2") is None
    assert controller.undo_stack.size() == 1

    dispatch(controller, store, controller.undo())
    assert controller.keys() == ["1", "2", "3"]


@pytest.mark.parametrize("op", ["edit", "delete"])
def test_commands_are_tenant_scoped(controller, op):
    commands = controller.edit_cell("1", "city", "X") if op == "edit" else controller.delete_rows(["1"])
    assert all(c.organization_id == ORG_ID for c in commands)
