# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from location_grid.db.store import InMemoryStore
from location_grid.grid.columns import LOCATIONS
from location_grid.logging.init import reset_logging
from location_grid.services.controller import GridController
from location_grid.services.session import SessionManager

ORG_ID = "org-1"
USER_ID = "user-1"
CLIENT_ID = "client-1"


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handler は setup 時点の sys.stdout を掴むため毎回作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """entity: locations
undo_depth: 20
page_size: 25
dataset_limit: 500
search_columns: [location_name, city]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "grid.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def profile_record() -> dict:
    return {
        "id": USER_ID,
        "organization_id": ORG_ID,
        "role": "manager",
        "full_name": "Test User",
        "email": "test@example.com",
        "organizations": {"id": ORG_ID, "name": "Acme"},
    }


@pytest.fixture()
def store(profile_record: dict) -> InMemoryStore:
    s = InMemoryStore(profiles=[profile_record])
    s.seed(
        "locations",
        [
            {"id": "1", "organization_id": ORG_ID, "client_id": CLIENT_ID, "location_name": "Main Plant", "city": "Austin", "total_tiv": 1000},
            {"id": "2", "organization_id": ORG_ID, "client_id": CLIENT_ID, "location_name": "Warehouse", "city": "Dallas", "total_tiv": 500},
            {"id": "3", "organization_id": ORG_ID, "client_id": CLIENT_ID, "location_name": "plant annex", "city": "Houston"},
            {"id": "9", "organization_id": "org-other", "client_id": CLIENT_ID, "location_name": "Foreign"},
        ],
    )
    return s


@pytest.fixture()
def session(store: InMemoryStore) -> SessionManager:
    manager = SessionManager(store.get_profile)
    manager.on_auth_change(USER_ID)
    return manager


@pytest.fixture()
def controller(store: InMemoryStore, session: SessionManager) -> GridController:
    records = store.select("locations", ORG_ID, order_by="location_name")
    return GridController.from_records(LOCATIONS, session, CLIENT_ID, records)
