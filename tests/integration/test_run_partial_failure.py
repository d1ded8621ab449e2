from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import pytest

import location_grid.cli.__main__ as cli_module
from location_grid.cli import main as cli_main
from location_grid.db.store import InMemoryStore, PersistenceError

"""Integration: a rejected batch insert ends the run with exit code 2.

The failed batch is rolled back locally, nothing reaches the store, the
SUMMARY line reports imported=0 failed=1 and the error log carries one
INSERT_FAILED record without row scope.
"""

USER_ID = "u-int"
ORG_ID = "org-int"


class RejectingStore(InMemoryStore):
    def insert(self, entity, organization_id, records):
        self.calls.append(("insert", entity, organization_id))
        raise PersistenceError("duplicate key value violates unique constraint 'locations_pkey'")


@pytest.fixture()
def rejecting_store(monkeypatch) -> RejectingStore:
    store = RejectingStore(profiles=[{"id": USER_ID, "organization_id": ORG_ID, "role": "admin"}])
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.setenv("GRID_USER_ID", USER_ID)
    monkeypatch.setattr(cli_module, "_mock_store", lambda: store)
    return store


def test_partial_failure_batch_rejected(write_config: Any, temp_workdir: Path, rejecting_store, capsys):
    p = temp_workdir / "data" / "paste.tsv"
    p.write_text("Location Name\tCity\tState\nA\tAustin\tTX\nB\tReno\tNV\n", encoding="utf-8")

    exit_code = cli_main(["import", str(p), "--client", "c1"])
    out = capsys.readouterr().out

    assert exit_code == 2
    assert re.search(r"^SUMMARY rows=2 imported=0 failed=1 skipped=0 ", out, re.MULTILINE)
    assert "ERROR insert locations rows=2 failed: duplicate key value" in out
    assert rejecting_store.count("locations") == 0

    (log_file,) = (temp_workdir / "logs").glob("errors-*.log")
    (line,) = log_file.read_text(encoding="utf-8").splitlines()
    record = json.loads(line)
    assert record["error_type"] == "INSERT_FAILED"
    assert record["row_key"] == "-"
    assert "duplicate key value" in record["message"]
    assert f"WARN errors written to {log_file.relative_to(temp_workdir)}" in out
