from __future__ import annotations

import logging

from location_grid.db.store import PersistenceStore
from location_grid.grid.columns import PAGE_SIZE_OPTIONS
from location_grid.grid.undo_stack import DEFAULT_UNDO_DEPTH
from location_grid.models.column import EntitySchema
from location_grid.models.row import Row
from location_grid.services.controller import GridController
from location_grid.services.session import SessionManager

"""Initial dataset load for one client's grid."""

__all__ = [
    "DEFAULT_DATASET_LIMIT",
    "load_dataset",
    "open_grid",
]

logger = logging.getLogger(__name__)

DEFAULT_DATASET_LIMIT = 500


def load_dataset(
    store: PersistenceStore,
    schema: EntitySchema,
    client_id: str,
    session: SessionManager,
    limit: int = DEFAULT_DATASET_LIMIT,
) -> list[Row]:
    """Fetch the client's rows, ordered by the schema's default order column."""
    organization_id = session.require_active().organization_id
    records = store.select(
        schema.entity,
        organization_id,  # type: ignore[arg-type]
        filters={"client_id": client_id},
        order_by=schema.default_order,
        limit=limit,
    )
    logger.info(f"loaded {len(records)} {schema.entity} row(s) for client {client_id}")
    return [Row.from_record(r, schema.key_field) for r in records]


def open_grid(
    store: PersistenceStore,
    schema: EntitySchema,
    client_id: str,
    session: SessionManager,
    *,
    limit: int = DEFAULT_DATASET_LIMIT,
    undo_depth: int = DEFAULT_UNDO_DEPTH,
    page_size: int = PAGE_SIZE_OPTIONS[1],
) -> GridController:
    rows = load_dataset(store, schema, client_id, session, limit=limit)
    return GridController(schema, session, client_id, rows, undo_depth=undo_depth, page_size=page_size)
