from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Persist command model.

Grid operations apply their change to local state synchronously and return a
list of PersistCommand values describing the remote calls to issue. Each
command carries the tenant scope and enough identity (row keys, version
stamp) for its result to be applied to the right rows regardless of the
order in which results arrive.
"""

__all__ = [
    "CommandOp",
    "PersistCommand",
    "GridFailure",
]

_command_ids = itertools.count(1)


class CommandOp(Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class PersistCommand:
    """One remote call to issue against the persistence store.

    Attributes:
        op: insert / update / delete
        entity: Store table name
        organization_id: Tenant scope, included in every query
        row_keys: Keys of the affected rows, aligned with payload for inserts
        payload: insert -> full records; update -> one {column: value} dict;
            delete -> empty
        version: Monotonic stamp issued by the controller (update ordering)
        entry_id: Undo entry produced by the mutation, None for corrections
    """
    op: CommandOp
    entity: str
    organization_id: str
    row_keys: tuple[str, ...]
    payload: tuple[dict[str, Any], ...] = ()
    version: int = 0
    entry_id: int | None = None
    command_id: int = field(default_factory=lambda: next(_command_ids))

    @property
    def columns(self) -> list[str]:
        if self.op is CommandOp.UPDATE and self.payload:
            return list(self.payload[0].keys())
        return []


@dataclass(frozen=True)
class GridFailure:
    """A surfaced, non-fatal failure scoped to the rows it affected."""
    command: PersistCommand
    error_type: str  # UPPER_SNAKE
    message: str
    rolled_back: bool = False  # Local state reverted
    removed_rows: tuple[str, ...] = ()  # Rows dropped locally (stale id)
