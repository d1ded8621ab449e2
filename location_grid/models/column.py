from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Column descriptor models for the editable location grid.

A ColumnDescriptor is static metadata describing one field of a grid row:
its type tag, its label, and how it is rendered. Descriptors are immutable for
the lifetime of a grid session; the codec consults the type tag so that
coercion rules live in one place instead of at every call site.
"""

__all__ = [
    "ColumnType",
    "ColumnOption",
    "ColumnDescriptor",
    "EntitySchema",
]


class ColumnType(Enum):
    """Type tag for a grid column.

    - TEXT: free text, stored verbatim
    - NUMBER: numeric value, separators stripped on input
    - CURRENCY: numeric value shown as whole dollars
    - DATE: ISO date string passthrough
    - SELECT: value from an ordered option list
    """
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    SELECT = "select"

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.NUMBER, ColumnType.CURRENCY)


@dataclass(frozen=True)
class ColumnOption:
    """One selectable value of a SELECT column."""
    value: str  # 保存値
    label: str  # 表示ラベル


@dataclass(frozen=True)
class ColumnDescriptor:
    """Static metadata for a single grid column."""
    key: str  # Stored field name
    label: str  # Header label shown to users (also matched on paste)
    type: ColumnType = ColumnType.TEXT
    options: tuple[ColumnOption, ...] = ()  # SELECT only, display order
    width: int = 120
    format: str | None = None  # "currency" | "number" | "decimal" | None
    required: bool = False  # Cannot be cleared by an edit

    def option_for_value(self, value: object) -> ColumnOption | None:
        for opt in self.options:
            if opt.value == value or opt.value == str(value):
                return opt
        return None

    def option_for_text(self, text: str) -> ColumnOption | None:
        """Match user text against option values first, then labels (case-insensitive)."""
        needle = text.strip().lower()
        for opt in self.options:
            if opt.value.lower() == needle:
                return opt
        for opt in self.options:
            if opt.label.lower() == needle:
                return opt
        return None


@dataclass(frozen=True)
class EntitySchema:
    """Code-defined column configuration for one entity type.

    Holds everything the grid needs to know about a table that is not a
    per-session setting: column order, paste header aliases, which fields are
    system managed, which must be regenerated on duplicate, and which columns
    the free-text search looks at.
    """
    entity: str  # Store table name
    columns: tuple[ColumnDescriptor, ...]
    header_aliases: dict[str, str] = field(default_factory=dict)  # lower-case header -> column key
    key_field: str = "id"
    system_fields: frozenset[str] = frozenset({"id", "created_at", "updated_at"})
    unique_fields: frozenset[str] = frozenset()  # Cleared on duplicate
    import_skip_fields: frozenset[str] = frozenset()  # Never taken from pasted data
    search_columns: tuple[str, ...] = ()
    new_row_defaults: dict[str, object] = field(default_factory=dict)
    copy_label_column: str | None = None  # Gets " (Copy)" suffix on duplicate
    default_order: str | None = None

    def column(self, key: str) -> ColumnDescriptor | None:
        for col in self.columns:
            if col.key == key:
                return col
        return None

    @property
    def column_keys(self) -> list[str]:
        return [c.key for c in self.columns]
