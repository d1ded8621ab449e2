"""Domain models for the location grid editing engine.

This package contains the value types shared by the grid components, the
controller and the persistence layer.
"""

from .column import ColumnDescriptor, ColumnOption, ColumnType, EntitySchema
from .command import CommandOp, GridFailure, PersistCommand
from .row import Row
from .session import Role, Session, UserProfile
from .undo_entry import RowSnapshot, UndoEntry, UndoKind

__all__ = [
    # Column configuration
    "ColumnDescriptor",
    "ColumnOption",
    "ColumnType",
    "EntitySchema",
    # Dataset
    "Row",
    "RowSnapshot",
    "UndoEntry",
    "UndoKind",
    # Persistence
    "CommandOp",
    "GridFailure",
    "PersistCommand",
    # Session
    "Role",
    "Session",
    "UserProfile",
]
