from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from location_grid.grid.undo_stack import DEFAULT_UNDO_DEPTH

"""Config loader.

Responsibilities:
- Load YAML config/grid.yml
- Validate against the JSON schema shipped with the package
- Apply defaults (undo_depth=50, page_size=50, dataset_limit=500)
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "GridConfig",
    "load_config",
    "SCHEMA_PATH",
]

SCHEMA_PATH = Path(__file__).with_name("grid_config_schema.json")

DEFAULT_PAGE_SIZE = 50
DEFAULT_DATASET_LIMIT = 500


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class GridConfig:
    entity: str
    undo_depth: int = DEFAULT_UNDO_DEPTH
    page_size: int = DEFAULT_PAGE_SIZE
    dataset_limit: int = DEFAULT_DATASET_LIMIT
    search_columns: tuple[str, ...] | None = None  # None -> schema default
    keep_na_strings: tuple[str, ...] = ()
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not valid JSON, or the config
            violates the schema (missing keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> GridConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    search = data.get("search_columns")
    return GridConfig(
        entity=data["entity"],
        undo_depth=data.get("undo_depth", DEFAULT_UNDO_DEPTH),
        page_size=data.get("page_size", DEFAULT_PAGE_SIZE),
        dataset_limit=data.get("dataset_limit", DEFAULT_DATASET_LIMIT),
        search_columns=tuple(search) if search else None,
        keep_na_strings=tuple(data.get("keep_na_strings", ())),
        database=db,
    )
