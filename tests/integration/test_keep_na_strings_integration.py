from __future__ import annotations

from pathlib import Path

import pandas as pd  # type: ignore
import pytest

import location_grid.cli.__main__ as cli_module
from location_grid.cli import main as cli_main
from location_grid.db.store import InMemoryStore

"""Integration: keep_na_strings keeps "NA" cells as text through a file import."""

USER_ID = "u-na"
ORG_ID = "org-na"


@pytest.fixture()
def na_excel(temp_workdir: Path) -> Path:
    path = temp_workdir / "data" / "na.xlsx"
    df = pd.DataFrame([["Location Name", "State", "Region"], ["North Site", "NA", "N/A"]])
    df.to_excel(path, header=False, index=False)
    return path


@pytest.fixture()
def shared_store(monkeypatch) -> InMemoryStore:
    store = InMemoryStore(profiles=[{"id": USER_ID, "organization_id": ORG_ID, "role": "user"}])
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.setenv("GRID_USER_ID", USER_ID)
    monkeypatch.setattr(cli_module, "_mock_store", lambda: store)
    return store


def _write_config(temp_workdir: Path, keep: list[str]) -> None:
    lines = ["entity: locations"]
    if keep:
        lines.append("keep_na_strings: [" + ", ".join(keep) + "]")
    (temp_workdir / "config" / "grid.yml").write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_keep_na_strings_preserved(temp_workdir: Path, na_excel: Path, shared_store: InMemoryStore):
    _write_config(temp_workdir, ["NA"])
    assert cli_main(["import", str(na_excel), "--client", "c1"]) == 0
    (row,) = shared_store.select("locations", ORG_ID)
    assert row["state"] == "NA"
    # keep_na_strings に含まれない "N/A" は欠損扱い
    assert "region" not in row


def test_default_na_handling(temp_workdir: Path, na_excel: Path, shared_store: InMemoryStore):
    _write_config(temp_workdir, [])
    assert cli_main(["import", str(na_excel), "--client", "c1"]) == 0
    (row,) = shared_store.select("locations", ORG_ID)
    assert "state" not in row
