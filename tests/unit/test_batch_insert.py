from __future__ import annotations

import pytest

from location_grid.db.batch_insert import BatchInsertError, InsertResult, batch_insert, collect_columns


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list[list] = []
        self.page_sizes: list[int] = []


# execute_values を差し替えて DB 接続なしでロジックを検証

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import location_grid.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=1000, fetch=False):
        cursor.queries.append(sql)
        cursor.rows.extend(rows)
        cursor.page_sizes.append(page_size)
        if fetch:
            return [("id-%d" % i,) for i, _ in enumerate(rows)]
        return None

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_collect_columns_first_seen_order():
    records = [{"b": 1, "a": 2}, {"c": 3, "a": 4}]
    assert collect_columns(records) == ["b", "a", "c"]
    assert collect_columns(records, "organization_id") == ["b", "a", "c", "organization_id"]
    assert collect_columns([{"organization_id": "o", "x": 1}], "organization_id") == ["organization_id", "x"]


def test_batch_insert_ragged_records():
    cur = DummyCursor()
    res = batch_insert(cur, "locations", [{"location_name": "A"}, {"location_name": "B", "city": "Y"}])
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert res.columns == ("location_name", "city")
    assert res.returned_values is None
    assert cur.queries == ['INSERT INTO "locations" ("location_name","city") VALUES %s']
    assert cur.rows == [["A", None], ["B", "Y"]]


def test_batch_insert_scope_stamped_and_returning():
    cur = DummyCursor()
    res = batch_insert(
        cur, "locations", [{"location_name": "A"}, {"location_name": "B", "organization_id": "org-1"}],
        scope=("organization_id", "org-1"), returning=True,
    )
    assert cur.rows == [["A", "org-1"], ["B", "org-1"]]
    assert cur.queries[0].endswith("RETURNING *")
    assert res.returned_values == [("id-0",), ("id-1",)]


def test_batch_insert_scope_mismatch():
    cur = DummyCursor()
    with pytest.raises(BatchInsertError, match="organization_id"):
        batch_insert(cur, "locations", [{"organization_id": "org-2"}], scope=("organization_id", "org-1"))
    assert cur.queries == []


def test_batch_insert_empty_records():
    cur = DummyCursor()
    res = batch_insert(cur, "locations", [], returning=True)
    assert (res.inserted_rows, res.returned_values, res.columns) == (0, [], ())
    assert cur.queries == []


def test_batch_insert_wraps_driver_errors(monkeypatch):
    import location_grid.db.batch_insert as bi

    def failing(*args, **kwargs):
        raise RuntimeError("unique violation")

    monkeypatch.setattr(bi, "execute_values", failing)
    captured = []
    with pytest.raises(BatchInsertError, match="unique violation"):
        batch_insert(DummyCursor(), "t", [{"c": 1}], metrics_callback=captured.append)
    # 失敗時も計測は通知される
    assert len(captured) == 1


def test_batch_insert_with_metrics_callback():
    cur = DummyCursor()
    captured = []
    batch_insert(cur, "locations", [{"c": 1}, {"c": 2}, {"c": 3}], page_size=2, metrics_callback=captured.append)
    assert cur.page_sizes == [2]
    (metrics,) = captured
    assert metrics.batch_size == 3
    assert metrics.end_time >= metrics.start_time
    assert metrics.elapsed_seconds == metrics.end_time - metrics.start_time


def test_batch_insert_empty_records_skips_metrics():
    captured = []
    batch_insert(DummyCursor(), "t", [], metrics_callback=captured.append)
    assert captured == []
