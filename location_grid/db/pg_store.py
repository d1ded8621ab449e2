from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from location_grid.db.batch_insert import BatchInsertError, BatchMetrics, batch_insert, collect_columns
from location_grid.db.store import PersistenceError, StaleRowError

"""PostgreSQL implementation of the persistence collaborator (psycopg2).

Each call runs in its own transaction: COMMIT on success, ROLLBACK and a
PersistenceError on failure. Every statement includes the organization_id
predicate. Identifiers are interpolated (quoted) only after matching a
conservative pattern; values always go through parameters.
"""

__all__ = [
    "PgStore",
]

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise PersistenceError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def _rows_as_dicts(cursor: Any, rows: Sequence[Sequence[Any]] | None) -> list[dict[str, Any]]:
    if not rows:
        return []
    names = [d[0] for d in cursor.description]
    return [_stringify_id(dict(zip(names, r, strict=False))) for r in rows]


def _stringify_id(record: dict[str, Any]) -> dict[str, Any]:
    if record.get("id") is not None:
        record["id"] = str(record["id"])
    return record


class PgStore:
    """PersistenceStore backed by a psycopg2 connection."""

    def __init__(self, conn: Any, profiles_table: str = "user_profiles") -> None:
        self.conn = conn
        self.profiles_table = profiles_table

    def _run(self, fn):
        cur = self.conn.cursor()
        try:
            result = fn(cur)
            self.conn.commit()
            return result
        except PersistenceError:
            self.conn.rollback()
            raise
        except Exception as e:
            self.conn.rollback()
            raise PersistenceError(str(e)) from e
        finally:
            cur.close()

    def select(
        self,
        entity: str,
        organization_id: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        where = ["organization_id = %s"]
        params: list[Any] = [organization_id]
        for col, value in (filters or {}).items():
            where.append(f"{_ident(col)} = %s")
            params.append(value)
        sql = f"SELECT * FROM {_ident(entity)} WHERE {' AND '.join(where)}"
        if order_by:
            sql += f" ORDER BY {_ident(order_by)} ASC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        def op(cur):
            cur.execute(sql, params)
            return _rows_as_dicts(cur, cur.fetchall())

        return self._run(op)

    def insert(self, entity: str, organization_id: str, records: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        if not records:
            return []
        _ident(entity)
        for col in collect_columns(records, "organization_id"):
            _ident(col)

        def log_metrics(m: BatchMetrics) -> None:
            logger.debug(f"batch insert {entity} rows={m.batch_size} elapsed={m.elapsed_seconds:.3f}s")

        def op(cur):
            try:
                result = batch_insert(
                    cur,
                    entity,
                    records,
                    scope=("organization_id", organization_id),
                    returning=True,
                    metrics_callback=log_metrics,
                )
            except BatchInsertError as e:
                raise PersistenceError(str(e)) from e
            return _rows_as_dicts(cur, result.returned_values)

        return self._run(op)

    def update(self, entity: str, organization_id: str, key: str, values: dict[str, Any]) -> dict[str, Any]:
        if not values:
            raise PersistenceError("update without values")
        assignments = ", ".join(f"{_ident(col)} = %s" for col in values)
        sql = (
            f"UPDATE {_ident(entity)} SET {assignments} "
            "WHERE id = %s AND organization_id = %s RETURNING *"
        )
        params = [*values.values(), key, organization_id]

        def op(cur):
            cur.execute(sql, params)
            row = cur.fetchone()
            if row is None:
                raise StaleRowError(f"{entity} row not found: id={key}")
            return _rows_as_dicts(cur, [row])[0]

        return self._run(op)

    def delete(self, entity: str, organization_id: str, keys: Sequence[str]) -> None:
        if not keys:
            return
        sql = f"DELETE FROM {_ident(entity)} WHERE id = ANY(%s) AND organization_id = %s"

        def op(cur):
            cur.execute(sql, (list(keys), organization_id))

        self._run(op)

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        sql = (
            f"SELECT p.*, o.name AS organization_name FROM {_ident(self.profiles_table)} p "
            "LEFT JOIN organizations o ON o.id = p.organization_id WHERE p.id = %s"
        )

        def op(cur):
            cur.execute(sql, (user_id,))
            row = cur.fetchone()
            if row is None:
                return None
            record = _rows_as_dicts(cur, [row])[0]
            record["organizations"] = {"id": record.get("organization_id"), "name": record.pop("organization_name", None)}
            return record

        return self._run(op)
