from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

"""Persistence collaborator interface and an in-memory implementation.

Every read and write is scoped by organization id (tenant isolation). A row
that exists but belongs to another organization is indistinguishable from a
missing row: both raise StaleRowError on update.

InMemoryStore backs the tests and the CLI's mock mode (DISABLE_DB_CONNECT=1).
"""

__all__ = [
    "PersistenceError",
    "StaleRowError",
    "PersistenceStore",
    "InMemoryStore",
]


class PersistenceError(Exception):
    """Remote store call failed (network / constraint / store error)."""


class StaleRowError(PersistenceError):
    """Target row no longer exists in this organization (deleted elsewhere)."""


class PersistenceStore(Protocol):
    def select(
        self,
        entity: str,
        organization_id: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def insert(self, entity: str, organization_id: str, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]: ...

    def update(self, entity: str, organization_id: str, key: str, values: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, entity: str, organization_id: str, keys: Sequence[str]) -> None: ...

    def get_profile(self, user_id: str) -> dict[str, Any] | None: ...


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class InMemoryStore:
    """Tenant-scoped in-memory store with the PersistenceStore interface."""

    def __init__(self, profiles: Iterable[dict[str, Any]] | None = None) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._profiles: dict[str, dict[str, Any]] = {str(p["id"]): dict(p) for p in (profiles or [])}
        self.calls: list[tuple[str, str, str]] = []  # (op, entity, organization_id)

    def _table(self, entity: str) -> dict[str, dict[str, Any]]:
        return self._tables.setdefault(entity, {})

    def seed(self, entity: str, records: Iterable[dict[str, Any]]) -> None:
        table = self._table(entity)
        for record in records:
            rec = dict(record)
            rec.setdefault("id", uuid.uuid4().hex)
            rec["id"] = str(rec["id"])
            table[rec["id"]] = rec

    def add_profile(self, profile: dict[str, Any]) -> None:
        self._profiles[str(profile["id"])] = dict(profile)

    def select(
        self,
        entity: str,
        organization_id: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("select", entity, organization_id))
        rows = [
            copy.deepcopy(r)
            for r in self._table(entity).values()
            if r.get("organization_id") == organization_id
            and all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, str(r.get(order_by) or "")))
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, entity: str, organization_id: str, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        self.calls.append(("insert", entity, organization_id))
        table = self._table(entity)
        inserted = []
        for record in records:
            rec = dict(record)
            if rec.get("organization_id", organization_id) != organization_id:
                raise PersistenceError("organization_id does not match the request scope")
            rec["organization_id"] = organization_id
            key = rec.get("id")
            if key is None:
                key = uuid.uuid4().hex
            elif str(key) in table:
                raise PersistenceError(f"duplicate key value: id={key}")
            rec["id"] = str(key)
            rec.setdefault("created_at", _now())
            rec["updated_at"] = _now()
            table[rec["id"]] = rec
            inserted.append(copy.deepcopy(rec))
        return inserted

    def update(self, entity: str, organization_id: str, key: str, values: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", entity, organization_id))
        rec = self._table(entity).get(str(key))
        if rec is None or rec.get("organization_id") != organization_id:
            raise StaleRowError(f"{entity} row not found: id={key}")
        rec.update(values)
        rec["updated_at"] = _now()
        return copy.deepcopy(rec)

    def delete(self, entity: str, organization_id: str, keys: Sequence[str]) -> None:
        self.calls.append(("delete", entity, organization_id))
        table = self._table(entity)
        for key in keys:
            rec = table.get(str(key))
            # 既に存在しない行の削除は成功扱い (冪等)
            if rec is not None and rec.get("organization_id") == organization_id:
                del table[str(key)]

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        profile = self._profiles.get(str(user_id))
        return dict(profile) if profile is not None else None

    def get(self, entity: str, key: str) -> dict[str, Any] | None:
        """Unscoped read for assertions in tests."""
        rec = self._table(entity).get(str(key))
        return copy.deepcopy(rec) if rec is not None else None

    def count(self, entity: str) -> int:
        return len(self._table(entity))
