from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

"""Row model for the editable location grid.

A Row is one record of the dataset. Its key is either the store-assigned id
(persisted rows) or a client-generated temporary key for rows that were
created locally and are not yet confirmed by the store.
"""

__all__ = [
    "Row",
    "TEMP_KEY_PREFIX",
    "new_temp_key",
    "is_temp_key",
]

TEMP_KEY_PREFIX = "tmp-"


def new_temp_key() -> str:
    return f"{TEMP_KEY_PREFIX}{uuid.uuid4().hex}"


def is_temp_key(key: object) -> bool:
    return isinstance(key, str) and key.startswith(TEMP_KEY_PREFIX)


@dataclass
class Row:
    """One record held by the grid controller.

    Unlike the persisted record, values never contain the key field; the key
    is tracked separately so it can be swapped when an insert is confirmed.
    """
    key: str
    values: dict[str, Any] = field(default_factory=dict)
    temporary: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any], key_field: str = "id") -> Row:
        values = {k: v for k, v in record.items() if k != key_field}
        return cls(key=str(record[key_field]), values=values, temporary=False)

    def get(self, column_key: str) -> Any:
        return self.values.get(column_key)

    def to_record(self, key_field: str = "id") -> dict[str, Any]:
        record = dict(self.values)
        record[key_field] = self.key
        return record
