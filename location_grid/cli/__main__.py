from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from location_grid.config.loader import ConfigError, GridConfig, load_config
from location_grid.db.pg_store import PgStore
from location_grid.db.store import InMemoryStore, PersistenceError, PersistenceStore
from location_grid.excel.reader import SheetReadError, read_clipboard_text
from location_grid.grid import paste_parser
from location_grid.grid.columns import schema_for
from location_grid.logging.error_log import ErrorLogBuffer
from location_grid.logging.init import log_summary, setup_logging
from location_grid.models.column import EntitySchema
from location_grid.services.controller import ValidationError
from location_grid.services.dataset import open_grid
from location_grid.services.importer import import_text
from location_grid.services.session import SessionError, SessionManager
from location_grid.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- import FILE --client ID : bulk-import an .xlsx / .csv / .tsv / .txt file
  into a client's locations grid and print the SUMMARY line
- inspect FILE            : print the paste preview and header mapping

The signed-in user comes from GRID_USER_ID; DISABLE_DB_CONNECT=1 runs
against an in-memory store (mock mode) scoped to GRID_ORGANIZATION_ID.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/grid.yml")
MOCK_USER_ID = "local-user"
MOCK_ORGANIZATION_ID = "local-org"


def _resolve_dsn(cfg: GridConfig) -> str:
    """Connection string resolution.

    接続情報の優先順位:
        1. `.env` (main() 冒頭で上書きロード済み)
        2. プロセス環境変数 DATABASE_URL / PGDSN, 個別 PGHOST / PGPORT / ...
        3. config/grid.yml の database セクション
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _connect(cfg: GridConfig) -> Any:  # pragma: no cover (needs a database)
    import psycopg2

    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False  # PgStore が呼び出し単位で COMMIT / ROLLBACK
    return conn


def _mock_store() -> InMemoryStore:
    user_id = os.getenv("GRID_USER_ID", MOCK_USER_ID)
    organization_id = os.getenv("GRID_ORGANIZATION_ID", MOCK_ORGANIZATION_ID)
    return InMemoryStore(
        profiles=[
            {
                "id": user_id,
                "organization_id": organization_id,
                "role": "admin",
                "full_name": "Local User",
                "organizations": {"id": organization_id, "name": "Local"},
            }
        ]
    )


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (override=True: .env wins over existing variables)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="location-grid", description="Locations grid bulk import tool")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to grid.yml")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Bulk-import a spreadsheet into a client's grid")
    imp.add_argument("file", type=Path)
    imp.add_argument("--client", required=True, help="Client id the rows belong to")
    imp.add_argument("--sheet", default=0, help="Sheet name or index (.xlsx)")

    ins = sub.add_parser("inspect", help="Print the paste preview and header mapping")
    ins.add_argument("file", type=Path)
    ins.add_argument("--sheet", default=0, help="Sheet name or index (.xlsx)")
    return p.parse_args(argv)


def _sheet_arg(value: Any) -> str | int:
    return int(value) if isinstance(value, str) and value.isdigit() else value


def _schema(cfg: GridConfig) -> EntitySchema:
    try:
        schema = schema_for(cfg.entity)
    except KeyError as e:
        raise ConfigError(str(e.args[0])) from e
    if cfg.search_columns:
        unknown = [c for c in cfg.search_columns if schema.column(c) is None]
        if unknown:
            raise ConfigError(f"unknown search columns: {', '.join(unknown)}")
        schema = replace(schema, search_columns=cfg.search_columns)
    return schema


def _inspect(text: str, schema: EntitySchema) -> int:
    info = paste_parser.preview(text)
    if info is None:
        print("inspect: no data")
        return EXIT_SUCCESS_ALL
    print(
        f"rows={info.total_rows} data_rows={info.data_rows} columns={info.columns} "
        f"headers={'yes' if info.has_headers else 'no'}"
    )
    if info.first_headers:
        print(f"first_headers={info.first_headers}")
    parsed = paste_parser.parse(text, schema)
    if parsed.detected_headers is not None:
        for raw in parsed.detected_headers:
            key = paste_parser.resolve_header(paste_parser.clean_header(raw), schema)
            print(f"  {raw.strip()!r} -> {key or '(ignored)'}")
    return EXIT_SUCCESS_ALL


def _run_import(
    store: PersistenceStore, cfg: GridConfig, schema: EntitySchema, text: str, client_id: str, mode: str
) -> int:
    logger = setup_logging()
    session = SessionManager(store.get_profile)
    session.on_auth_change(os.getenv("GRID_USER_ID", MOCK_USER_ID))

    controller = open_grid(
        store,
        schema,
        client_id,
        session,
        limit=cfg.dataset_limit,
        undo_depth=cfg.undo_depth,
        page_size=cfg.page_size,
    )
    error_log = ErrorLogBuffer()
    result = import_text(controller, store, text, error_log=error_log)

    log_path = error_log.flush()
    if log_path is not None:
        logger.warning(f"errors written to {log_path}")

    page = controller.view()
    logger.info(f"grid rows={len(controller.rows)} pages={page.total_pages} page_size={controller.view_state.page_size}")

    summary_line = render_summary_line(result, mode=mode)
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if result.dispatch.ok else EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] が渡された場合に sys.argv を読まない
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
        schema = _schema(cfg)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        text = read_clipboard_text(
            args.file, sheet=_sheet_arg(args.sheet), keep_na_strings=list(cfg.keep_na_strings) or None
        )
    except SheetReadError as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _inspect(text, schema)

    # DB 接続制御: テスト等で完全に無効化したい場合 DISABLE_DB_CONNECT=1
    conn = None
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
    else:
        try:
            conn = _connect(cfg)
        except Exception as db_e:
            if os.getenv("SUPPRESS_DB_WARNING") == "1":
                logger.debug(f"DB connection failed (suppressed warn) -> fallback to mock mode: {db_e}")
            else:
                logger.warning(f"DB connection failed -> fallback to mock mode (nothing is persisted): {db_e}")

    store: PersistenceStore = PgStore(conn) if conn is not None else _mock_store()
    mode = "live" if conn is not None else "mock"
    logger.info(f"mode={mode}")
    try:
        return _run_import(store, cfg, schema, text, args.client, mode)
    except (SessionError, ValidationError, PersistenceError) as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
