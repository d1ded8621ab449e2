from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from location_grid.db.store import StaleRowError
from location_grid.grid import codec
from location_grid.grid.columns import PAGE_SIZE_OPTIONS
from location_grid.grid.paste_parser import ParsedPaste, clean_cell, split_cells
from location_grid.grid.selection import SelectionModel, focused_cell_text
from location_grid.grid.undo_stack import DEFAULT_UNDO_DEPTH, UndoStack
from location_grid.grid.view import PageView, ViewState, derive_view
from location_grid.models.column import ColumnDescriptor, ColumnType, EntitySchema
from location_grid.models.command import CommandOp, GridFailure, PersistCommand
from location_grid.models.row import Row, is_temp_key, new_temp_key
from location_grid.models.undo_entry import RowSnapshot, UndoEntry, UndoKind
from location_grid.services.session import SessionManager

"""Grid controller: the sole mutator of the dataset.

Every operation:

1. checks the session (SessionError, nothing mutated)
2. validates its input (ValidationError, nothing mutated)
3. applies the change to local rows synchronously (optimistic)
4. pushes one UndoEntry for the whole mutation
5. returns the PersistCommands to issue

Results come back through confirm() / fail(), in any order. Each update
carries a monotonic per-cell version stamp: a failure only rolls a cell back
when it is still the latest write for that cell, and an older write that
lands after a newer one triggers a corrective update with the current local
value (last committed value wins, not last response). A failed write that was
already superseded hands its rollback value on to the next open write for the
cell (and to the next undo entry), so a cell never rolls back to a value the
store did not accept.

Rows created locally keep a temporary key until their insert is confirmed.
Updates for such rows are held back and released with the store key; rows
deleted before their insert is confirmed get a corrective delete once the
store key is known.
"""

__all__ = [
    "ValidationError",
    "GridController",
]

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class ValidationError(Exception):
    """Input rejected before any local or remote mutation."""


@dataclass(frozen=True)
class _InFlight:
    """Local bookkeeping for one issued command (what to do if it fails)."""
    entry_id: int | None = None  # Undo entry created by the mutation
    kind: UndoKind | None = None
    replay: bool = False  # Issued by undo()
    snapshots: tuple[RowSnapshot, ...] = ()  # DELETE / undo: rows to restore


class GridController:
    def __init__(
        self,
        schema: EntitySchema,
        session: SessionManager,
        client_id: str,
        rows: Iterable[Row] | None = None,
        *,
        undo_depth: int = DEFAULT_UNDO_DEPTH,
        page_size: int = PAGE_SIZE_OPTIONS[1],
    ) -> None:
        if page_size not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"page_size must be one of {PAGE_SIZE_OPTIONS}, got {page_size}")
        self.schema = schema
        self.session = session
        self.client_id = client_id
        self.rows: list[Row] = []
        self._index: dict[str, Row] = {}
        for row in rows or ():
            self._append(row)

        self.undo_stack = UndoStack(undo_depth)
        self.selection = SelectionModel(key_order=self.keys)
        self.view_state = ViewState(page_size=page_size)
        self.failures: list[GridFailure] = []

        self._versions = itertools.count(1)
        self._cell_versions: dict[tuple[str, str], int] = {}
        self._confirmed_versions: dict[tuple[str, str], int] = {}
        # pending-save marker: (row_key, column_key | None) -> version / command id
        self.pending: dict[tuple[str, str | None], int] = {}
        # (row_key, column_key) -> {version: value before that write} for unresolved updates
        self._open_writes: dict[tuple[str, str], dict[int, Any]] = {}
        self._in_flight: dict[int, _InFlight] = {}
        self._deferred: dict[str, list[PersistCommand]] = {}  # temp key -> held updates
        self._cancelled: dict[str, RowSnapshot] = {}  # temp key -> row deleted before confirm

    @classmethod
    def from_records(
        cls,
        schema: EntitySchema,
        session: SessionManager,
        client_id: str,
        records: Iterable[Mapping[str, Any]],
        **kwargs: Any,
    ) -> GridController:
        rows = [Row.from_record(dict(r), schema.key_field) for r in records]
        return cls(schema, session, client_id, rows, **kwargs)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def keys(self) -> list[str]:
        return [r.key for r in self.rows]

    def row(self, key: str) -> Row | None:
        return self._index.get(key)

    def position(self, key: str) -> int:
        for i, r in enumerate(self.rows):
            if r.key == key:
                return i
        return -1

    def display_value(self, key: str, column_key: str) -> str:
        row = self._require_row(key)
        return codec.to_display(row.get(column_key), self._require_column(column_key))

    def view(self, state: ViewState | None = None) -> PageView:
        """Derive a page; without a state the grid's own view_state is used."""
        return derive_view(self.rows, state if state is not None else self.view_state, self.schema)

    def copy_focused(self, page_rows: Sequence[Row]) -> str:
        return focused_cell_text(self.selection.focused_cell, page_rows, self.schema.columns)

    def is_pending(self, key: str, column_key: str | None = None) -> bool:
        if column_key is not None:
            return (key, column_key) in self.pending
        return any(k == key for k, _ in self.pending)

    @property
    def has_pending(self) -> bool:
        return bool(self.pending) or bool(self._deferred)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def edit_cell(self, row_key: str, column_key: str, value: Any) -> list[PersistCommand]:
        """Set one cell. No-op when the normalized value equals the stored one."""
        organization_id = self._require_session()
        row = self._require_row(row_key)
        column = self._require_column(column_key)
        new_value = codec.normalize(value, column)
        self._validate(column, new_value)
        if new_value == row.get(column_key):
            return []
        logger.debug(f"edit {self.schema.entity}:{row_key}.{column_key}")
        return self._update_cells(organization_id, {row_key: {column_key: new_value}}, "edit cell")

    def paste_cells(self, text: str, page_keys: Sequence[str]) -> list[PersistCommand]:
        """Multi-cell paste anchored at the focused cell of the visible page.

        Single-cell text is left to the cell editor (returns no commands).
        Cells past the page or past the last column are dropped; cells that
        would clear a required column are skipped.
        """
        organization_id = self._require_session()
        focused = self.selection.focused_cell
        if focused is None:
            return []
        grid = split_cells(text or "")
        if not grid or (len(grid) == 1 and len(grid[0]) == 1):
            return []

        start_row, start_col = focused
        columns = self.schema.columns
        changes: dict[str, dict[str, Any]] = {}
        for row_offset, cells in enumerate(grid):
            target = start_row + row_offset
            if target >= len(page_keys):
                break
            key = page_keys[target]
            row = self._index.get(key)
            if row is None:
                continue
            for col_offset, cell in enumerate(cells):
                col_index = start_col + col_offset
                if col_index >= len(columns):
                    break
                column = columns[col_index]
                value = codec.to_stored(clean_cell(cell), column)
                if value is None and column.required:
                    continue
                if value != row.get(column.key):
                    changes.setdefault(key, {})[column.key] = value
        if not changes:
            return []
        cells = sum(len(v) for v in changes.values())
        logger.info(f"pasted {cells} cell(s) across {len(changes)} row(s)")
        return self._update_cells(organization_id, changes, "paste cells")

    def add_row(self, defaults: Mapping[str, Any] | None = None) -> list[PersistCommand]:
        """Append a new row with a temporary key (always at the end).

        Sorting is cleared so the new row shows up at the end of the grid.
        """
        organization_id = self._require_session()
        self.view_state = self.view_state.cleared_sort()
        values: dict[str, Any] = {}
        for key, value in {**self.schema.new_row_defaults, **(defaults or {})}.items():
            column = self.schema.column(key)
            values[key] = codec.normalize(value, column) if column is not None else value
        return self._insert_rows(organization_id, [values], UndoKind.ROW_ADD, "add row")

    def duplicate_rows(self, row_keys: Iterable[str]) -> list[PersistCommand]:
        """Append copies of the given rows, in dataset order, after the last row."""
        organization_id = self._require_session()
        wanted = set(row_keys)
        originals = [r for r in self.rows if r.key in wanted]
        if not originals:
            raise ValidationError("no rows to duplicate")
        cleared = self.schema.system_fields | self.schema.unique_fields
        copies = []
        for original in originals:
            values = {k: v for k, v in original.values.items() if k not in cleared}
            label_col = self.schema.copy_label_column
            if label_col:
                values[label_col] = f"{original.get(label_col) or 'Location'}{COPY_SUFFIX}"
            copies.append(values)
        return self._insert_rows(organization_id, copies, UndoKind.ROW_DUPLICATE, "duplicate rows")

    def delete_rows(self, row_keys: Iterable[str]) -> list[PersistCommand]:
        """Remove rows locally and queue the remote delete.

        The undo entry keeps each row's full field state and original index.
        """
        organization_id = self._require_session()
        wanted = set(row_keys)
        if not any(k in self._index for k in wanted):
            raise ValidationError("no rows to delete")
        snapshots = self._remove_rows(wanted)
        entry = UndoEntry(UndoKind.ROW_DELETE, snapshots, "delete rows")
        self.undo_stack.push(entry)
        return self._delete_commands(organization_id, snapshots, entry_id=entry.entry_id, kind=entry.kind)

    def duplicate_selected(self) -> list[PersistCommand]:
        return self.duplicate_rows(self.selection.ordered_selection())

    def delete_selected(self) -> list[PersistCommand]:
        return self.delete_rows(self.selection.ordered_selection())

    def bulk_import(self, parsed: ParsedPaste | Sequence[Mapping[str, Any]]) -> list[PersistCommand]:
        """Append parsed paste rows (in parse order) as one batch and one undo entry.

        Rows with no usable value are dropped; an import with no usable rows
        is a validation failure.
        """
        organization_id = self._require_session()
        raw_rows = parsed.rows if isinstance(parsed, ParsedPaste) else parsed
        skip = self.schema.system_fields | self.schema.import_skip_fields
        records = []
        for raw in raw_rows:
            values: dict[str, Any] = {}
            for key, text in raw.items():
                column = self.schema.column(key)
                if key in skip or column is None:
                    continue
                value = codec.to_stored(text, column)
                if value is not None and value != "":
                    values[key] = value
            if values:
                records.append(values)
        if not records:
            raise ValidationError("no valid data found to import")
        logger.info(f"importing {len(records)} {self.schema.entity} row(s)")
        return self._insert_rows(organization_id, records, UndoKind.BULK_IMPORT, "bulk import")

    def undo(self) -> list[PersistCommand]:
        """Replay the newest undo entry and issue the remote correction."""
        organization_id = self._require_session()
        entry = self.undo_stack.pop()
        if entry is None:
            return []
        logger.debug(f"undo {entry!r}")

        if entry.kind is UndoKind.CELL_EDIT:
            changes = {s.key: dict(s.values) for s in entry.inverse if s.key in self._index}
            if not changes:
                return []
            return self._update_cells(organization_id, changes, entry.description, replay_of=entry)

        if entry.kind is UndoKind.ROW_DELETE:
            return self._restore_rows(organization_id, entry)

        # row_add / row_duplicate / bulk_import: remove the rows again
        keys = {k for k in entry.row_keys if k in self._index}
        if not keys:
            return []
        snapshots = self._remove_rows(keys)
        return self._delete_commands(organization_id, snapshots, kind=entry.kind, replay=True)

    # ------------------------------------------------------------------
    # Remote completion
    # ------------------------------------------------------------------
    def confirm(self, command: PersistCommand, records: Sequence[Mapping[str, Any]] | None = None) -> list[PersistCommand]:
        """Apply a successful store response; returns follow-up commands."""
        self._in_flight.pop(command.command_id, None)
        if command.op is CommandOp.INSERT:
            return self._confirm_insert(command, records or [])
        if command.op is CommandOp.UPDATE:
            return self._confirm_update(command)
        for key in command.row_keys:
            if self.pending.get((key, None)) == command.command_id:
                del self.pending[(key, None)]
        return []

    def fail(self, command: PersistCommand, error: Exception) -> list[PersistCommand]:
        """Apply a failed store response: roll back, drop the undo entry, surface it."""
        flight = self._in_flight.pop(command.command_id, _InFlight())
        if isinstance(error, StaleRowError):
            failure = self._fail_stale(command, flight, error)
        elif command.op is CommandOp.UPDATE:
            failure = self._fail_update(command, flight, error)
        elif command.op is CommandOp.INSERT:
            failure = self._fail_insert(command, flight, error)
        else:
            failure = self._fail_delete(command, flight, error)
        self.failures.append(failure)
        logger.warning(
            f"{command.op.value} {command.entity} failed ({failure.error_type}): {failure.message}"
        )
        return []

    # ------------------------------------------------------------------
    # Internals: local state
    # ------------------------------------------------------------------
    def _require_session(self) -> str:
        return self.session.require_active().organization_id  # type: ignore[return-value]

    def _require_row(self, key: str) -> Row:
        row = self._index.get(key)
        if row is None:
            raise ValidationError(f"unknown row: {key}")
        return row

    def _require_column(self, key: str) -> ColumnDescriptor:
        column = self.schema.column(key)
        if column is None:
            raise ValidationError(f"unknown column: {key}")
        return column

    def _validate(self, column: ColumnDescriptor, value: Any) -> None:
        if value is None:
            if column.required:
                raise ValidationError(f"{column.label} is required")
            return
        if column.type is ColumnType.SELECT and column.options and column.option_for_value(value) is None:
            raise ValidationError(f"{column.label}: '{value}' is not a valid option")

    def _append(self, row: Row, index: int | None = None) -> None:
        if row.key in self._index:
            raise ValueError(f"duplicate row key: {row.key}")
        if index is None or index >= len(self.rows):
            self.rows.append(row)
        else:
            self.rows.insert(max(0, index), row)
        self._index[row.key] = row

    def _remove_rows(self, keys: set[str]) -> tuple[RowSnapshot, ...]:
        """Remove rows, returning full snapshots with their original indices."""
        snapshots = tuple(
            RowSnapshot.capture(r.key, i, r.values) for i, r in enumerate(self.rows) if r.key in keys
        )
        self.rows = [r for r in self.rows if r.key not in keys]
        for s in snapshots:
            del self._index[s.key]
        self.selection.forget(keys)
        return snapshots

    def _rekey(self, old_key: str, new_key: str) -> None:
        row = self._index.pop(old_key)
        row.key = new_key
        self._index[new_key] = row
        self.undo_stack.remap_key(old_key, new_key)
        self.selection.remap_key(old_key, new_key)
        for table in (self._cell_versions, self._confirmed_versions, self.pending, self._open_writes):
            for marker in [m for m in table if m[0] == old_key]:
                table[(new_key, marker[1])] = table.pop(marker)

    def _command(
        self,
        organization_id: str,
        op: CommandOp,
        keys: Sequence[str],
        payload: Sequence[dict[str, Any]] = (),
        version: int = 0,
        entry_id: int | None = None,
    ) -> PersistCommand:
        return PersistCommand(
            op=op,
            entity=self.schema.entity,
            organization_id=organization_id,
            row_keys=tuple(keys),
            payload=tuple(dict(p) for p in payload),
            version=version,
            entry_id=entry_id,
        )

    def _update_cells(
        self,
        organization_id: str,
        changes: dict[str, dict[str, Any]],
        description: str,
        replay_of: UndoEntry | None = None,
    ) -> list[PersistCommand]:
        entry = None
        snapshots = []
        planned = []
        for key, values in changes.items():
            row = self._index[key]
            prior = {c: row.get(c) for c in values}
            row.values.update(values)
            version = next(self._versions)
            for column_key in values:
                self._cell_versions[(key, column_key)] = version
                self.pending[(key, column_key)] = version
                self._open_writes.setdefault((key, column_key), {})[version] = prior[column_key]
            snapshots.append(RowSnapshot.capture(key, self.position(key), prior))
            planned.append((key, values, version))

        if replay_of is None:
            entry = UndoEntry(UndoKind.CELL_EDIT, tuple(snapshots), description)
            self.undo_stack.push(entry)

        commands = []
        for key, values, version in planned:
            cmd = self._command(
                organization_id,
                CommandOp.UPDATE,
                [key],
                [values],
                version=version,
                entry_id=entry.entry_id if entry else None,
            )
            self._in_flight[cmd.command_id] = _InFlight(
                entry_id=cmd.entry_id,
                kind=UndoKind.CELL_EDIT,
                replay=replay_of is not None,
            )
            if self._index[key].temporary:
                # 挿入未確定の行: 確定後にストアキーで送信
                self._deferred.setdefault(key, []).append(cmd)
            else:
                commands.append(cmd)
        return commands

    def _insert_rows(
        self,
        organization_id: str,
        value_sets: list[dict[str, Any]],
        kind: UndoKind,
        description: str,
    ) -> list[PersistCommand]:
        rows = []
        for values in value_sets:
            values = dict(values)
            values["client_id"] = self.client_id
            values["organization_id"] = organization_id
            row = Row(key=new_temp_key(), values=values, temporary=True)
            self._append(row)
            rows.append(row)

        snapshots = tuple(RowSnapshot.capture(r.key, self.position(r.key), {}) for r in rows)
        entry = UndoEntry(kind, snapshots, description)
        self.undo_stack.push(entry)
        cmd = self._command(
            organization_id,
            CommandOp.INSERT,
            [r.key for r in rows],
            [r.values for r in rows],
            entry_id=entry.entry_id,
        )
        for r in rows:
            self.pending[(r.key, None)] = cmd.command_id
        self._in_flight[cmd.command_id] = _InFlight(entry_id=entry.entry_id, kind=kind)
        return [cmd]

    def _delete_commands(
        self,
        organization_id: str,
        snapshots: tuple[RowSnapshot, ...],
        *,
        entry_id: int | None = None,
        kind: UndoKind | None = None,
        replay: bool = False,
    ) -> list[PersistCommand]:
        persisted = []
        for s in snapshots:
            if is_temp_key(s.key):
                # 挿入確定前の行: 確定時に削除を発行
                self._cancelled[s.key] = s
            else:
                persisted.append(s)
        if not persisted:
            return []
        cmd = self._command(organization_id, CommandOp.DELETE, [s.key for s in persisted], entry_id=entry_id)
        for s in persisted:
            self.pending[(s.key, None)] = cmd.command_id
        self._in_flight[cmd.command_id] = _InFlight(
            entry_id=entry_id, kind=kind, replay=replay, snapshots=tuple(persisted)
        )
        return [cmd]

    def _restore_rows(self, organization_id: str, entry: UndoEntry) -> list[PersistCommand]:
        """Undo of a delete: re-insert rows at their original positions."""
        restored = []
        for s in sorted(entry.inverse, key=lambda s: s.index):
            if s.key in self._index:
                continue
            still_unconfirmed = self._cancelled.pop(s.key, None) is not None
            row = Row(key=s.key, values=dict(s.values), temporary=still_unconfirmed)
            self._append(row, s.index)
            if not still_unconfirmed:
                restored.append(row)
        if not restored:
            return []
        records = [r.to_record(self.schema.key_field) for r in restored]
        cmd = self._command(organization_id, CommandOp.INSERT, [r.key for r in restored], records)
        for r in restored:
            self.pending[(r.key, None)] = cmd.command_id
        self._in_flight[cmd.command_id] = _InFlight(
            kind=UndoKind.ROW_DELETE,
            replay=True,
            snapshots=tuple(s for s in entry.inverse if s.key in {r.key for r in restored}),
        )
        return [cmd]

    # ------------------------------------------------------------------
    # Internals: confirmations
    # ------------------------------------------------------------------
    def _confirm_insert(self, command: PersistCommand, records: Sequence[Mapping[str, Any]]) -> list[PersistCommand]:
        key_field = self.schema.key_field
        followups: list[PersistCommand] = []
        for i, key in enumerate(command.row_keys):
            record = records[i] if i < len(records) else {}
            new_key = str(record[key_field]) if record.get(key_field) is not None else key
            self.pending.pop((key, None), None)

            cancelled = self._cancelled.pop(key, None)
            if cancelled is not None:
                # 確定前に削除 (または取消) された行: ストア側も削除する
                self.undo_stack.remap_key(key, new_key)
                self._drop_deferred(key)
                followups.extend(
                    self._delete_commands(
                        command.organization_id, (cancelled.with_key(new_key),), kind=UndoKind.ROW_DELETE
                    )
                )
                continue

            row = self._index.get(key)
            if row is None:
                continue
            if new_key != key:
                self._rekey(key, new_key)
            row.temporary = False
            for field_name, value in record.items():
                if field_name != key_field and field_name not in row.values:
                    row.values[field_name] = value
            for held in self._deferred.pop(key, []):
                followups.append(replace(held, row_keys=(new_key,)))
        return followups

    def _confirm_update(self, command: PersistCommand) -> list[PersistCommand]:
        key = command.row_keys[0]
        stale_columns = []
        for column_key in command.columns:
            marker = (key, column_key)
            if self.pending.get(marker) == command.version:
                del self.pending[marker]
            self._close_write(marker, command.version)
            confirmed = self._confirmed_versions.get(marker, 0)
            if command.version > confirmed:
                self._confirmed_versions[marker] = command.version
            elif key in self._index:
                # 古い書き込みが新しい書き込みの後に到着: 現在のローカル値で上書き
                stale_columns.append(column_key)
        if not stale_columns:
            return []
        row = self._index[key]
        values = {c: row.get(c) for c in stale_columns}
        version = next(self._versions)
        for column_key in stale_columns:
            self._cell_versions[(key, column_key)] = version
            self.pending[(key, column_key)] = version
        cmd = self._command(command.organization_id, CommandOp.UPDATE, [key], [values], version=version)
        self._in_flight[cmd.command_id] = _InFlight()
        logger.debug(f"corrective update {self.schema.entity}:{key} {stale_columns}")
        return [cmd]

    # ------------------------------------------------------------------
    # Internals: failures
    # ------------------------------------------------------------------
    def _discard_entry(self, flight: _InFlight, keys: Iterable[str]) -> None:
        if flight.entry_id is None:
            return
        self.undo_stack.discard(flight.entry_id, keys=list(keys))

    def _close_write(self, marker: tuple[str, str], version: int) -> None:
        writes = self._open_writes.get(marker)
        if writes is None:
            return
        writes.pop(version, None)
        if not writes:
            del self._open_writes[marker]

    def _drop_deferred(self, key: str) -> None:
        for held in self._deferred.pop(key, []):
            flight = self._in_flight.pop(held.command_id, None)
            if flight is not None:
                self._discard_entry(flight, [key])
            for column_key in held.columns:
                if self.pending.get((key, column_key)) == held.version:
                    del self.pending[(key, column_key)]
                self._close_write((key, column_key), held.version)

    def _fail_stale(self, command: PersistCommand, flight: _InFlight, error: Exception) -> GridFailure:
        present = {k for k in command.row_keys if k in self._index}
        if present:
            self._remove_rows(present)
        for key in command.row_keys:
            self.undo_stack.drop_row(key)
            for marker in [m for m in self.pending if m[0] == key]:
                del self.pending[marker]
            for marker in [m for m in self._open_writes if m[0] == key]:
                del self._open_writes[marker]
        return GridFailure(
            command=command,
            error_type="STALE_ROW",
            message=str(error),
            rolled_back=False,
            removed_rows=tuple(k for k in command.row_keys if k in present),
        )

    def _fail_update(self, command: PersistCommand, flight: _InFlight, error: Exception) -> GridFailure:
        key = command.row_keys[0]
        row = self._index.get(key)
        restored = []
        for column_key in command.columns:
            marker = (key, column_key)
            writes = self._open_writes.get(marker, {})
            if command.version not in writes:
                # 補正更新: 戻す値なし
                if self.pending.get(marker) == command.version:
                    del self.pending[marker]
                continue
            prior_value = writes.pop(command.version)
            if self._cell_versions.get(marker) == command.version:
                if row is not None:
                    row.values[column_key] = prior_value
                    restored.append(column_key)
                confirmed = self._confirmed_versions.get(marker, 0)
                older = [v for v in writes if confirmed < v < command.version]
                if older:
                    # 未確定の古い書き込みの結果に委ねる
                    self._cell_versions[marker] = self.pending[marker] = max(older)
                else:
                    self.pending.pop(marker, None)
            else:
                # 後続の編集で上書き済み: 戻し先を次の書き込みと取消エントリへ引き継ぐ
                newer = [v for v in writes if v > command.version]
                if newer:
                    writes[min(newer)] = prior_value
                if not flight.replay and flight.entry_id is not None:
                    self.undo_stack.carry_prior(
                        flight.entry_id, key, column_key, command.payload[0][column_key], prior_value
                    )
            if not writes:
                del self._open_writes[marker]

        if flight.replay and row is not None:
            # 取消に失敗: 再度取消できるよう対象行のエントリを戻す
            snapshot = RowSnapshot.capture(key, self.position(key), command.payload[0])
            self.undo_stack.push(UndoEntry(UndoKind.CELL_EDIT, (snapshot,), "edit cell"))
        else:
            self._discard_entry(flight, [key])
        return GridFailure(command, "UPDATE_FAILED", str(error), rolled_back=bool(restored))

    def _fail_insert(self, command: PersistCommand, flight: _InFlight, error: Exception) -> GridFailure:
        keys = set(command.row_keys)
        for key in command.row_keys:
            self.pending.pop((key, None), None)
            self._cancelled.pop(key, None)
            self._drop_deferred(key)
        present = {k for k in keys if k in self._index}
        if present:
            self._remove_rows(present)
        if flight.replay and flight.snapshots:
            self.undo_stack.push(UndoEntry(UndoKind.ROW_DELETE, flight.snapshots, "delete rows"))
        elif flight.entry_id is not None:
            self.undo_stack.discard(flight.entry_id)
        return GridFailure(command, "INSERT_FAILED", str(error), rolled_back=bool(present))

    def _fail_delete(self, command: PersistCommand, flight: _InFlight, error: Exception) -> GridFailure:
        for key in command.row_keys:
            self.pending.pop((key, None), None)
        restored = False
        for s in sorted(flight.snapshots, key=lambda s: s.index):
            if s.key not in self._index:
                self._append(Row(key=s.key, values=dict(s.values)), s.index)
                restored = True
        if flight.replay and flight.kind is not None:
            inverse = tuple(RowSnapshot(key=s.key, index=s.index) for s in flight.snapshots)
            self.undo_stack.push(UndoEntry(flight.kind, inverse, "restore rows"))
        elif flight.entry_id is not None:
            self.undo_stack.discard(flight.entry_id)
        return GridFailure(command, "DELETE_FAILED", str(error), rolled_back=restored)
