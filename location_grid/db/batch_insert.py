from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT of grid records.

Bulk imports, duplicates and undo-restores arrive as a list of record dicts
that do not all carry the same keys. They are flattened onto the union of
their columns (first-seen order, missing values as NULL) and written with
one execute_values call. With a scope the tenant column is stamped on every
row and a record that names another tenant is refused.

RETURNING * is used when the caller needs the store-assigned ids to replace
client temporary keys. Identifiers are expected to be validated by the
caller.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "collect_columns",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing data for a single batch insert."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float  # time.time()


@dataclass(frozen=True)
class InsertResult:
    columns: tuple[str, ...]
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def collect_columns(records: Iterable[Mapping[str, Any]], scope_column: str | None = None) -> list[str]:
    """Union of record keys in first-seen order; the scope column goes last unless already present."""
    columns: dict[str, None] = {}
    for rec in records:
        for col in rec:
            columns.setdefault(col, None)
    if scope_column is not None:
        columns.setdefault(scope_column, None)
    return list(columns)


def batch_insert(
    cursor: Any,
    table: str,
    records: Iterable[Mapping[str, Any]],
    *,
    scope: tuple[str, Any] | None = None,
    returning: bool = False,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert records in one batched statement.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (検証済み想定)
    records: 挿入するレコード (キー集合は不揃いでよい)
    scope: (tenant column, value). 全行に付与し、異なる値を持つ行は拒否
    returning: True の場合 RETURNING * を付与 (採番 id 取得用途)
    page_size: execute_values の page_size
    metrics_callback: receives BatchMetrics after the statement ran (also
        on failure). Not invoked for an empty batch.

    Raises:
        BatchInsertError: scope mismatch, or the driver rejected the batch
    """
    records = list(records)
    if not records:
        return InsertResult(columns=(), inserted_rows=0, returned_values=[] if returning else None)

    scope_column, scope_value = scope if scope is not None else (None, None)
    columns = collect_columns(records, scope_column)
    rows = []
    for rec in records:
        if scope_column is not None and rec.get(scope_column, scope_value) != scope_value:
            raise BatchInsertError(f"{scope_column} does not match the request scope")
        rows.append([scope_value if c == scope_column else rec.get(c) for c in columns])

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f'INSERT INTO "{table}" ({cols_sql}) VALUES %s'
    if returning:
        sql += " RETURNING *"

    start_time = time.time()
    try:
        # fetch=True: 複数ページに分かれても RETURNING 行をまとめて受け取る
        returned = execute_values(cursor, sql, rows, page_size=page_size, fetch=returning)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(len(rows), end_time - start_time, start_time, end_time))

    return InsertResult(
        columns=tuple(columns),
        inserted_rows=len(rows),
        returned_values=list(returned) if returning else None,
    )
