from __future__ import annotations

import logging
from datetime import UTC, datetime

from location_grid.db.store import PersistenceStore
from location_grid.grid import paste_parser
from location_grid.logging.error_log import ErrorLogBuffer
from location_grid.models.command import CommandOp
from location_grid.models.dispatch_result import ImportResult
from location_grid.services.controller import GridController
from location_grid.services.dispatcher import dispatch
from location_grid.services.progress import ProgressTracker

"""Paste / file import orchestration.

parse -> controller.bulk_import -> dispatch, aggregated into an ImportResult
for the SUMMARY line. A failed batch insert has already been rolled back
locally by the controller; here it only shows up in the counts.
"""

__all__ = [
    "import_text",
]

logger = logging.getLogger(__name__)


def import_text(
    controller: GridController,
    store: PersistenceStore,
    text: str,
    *,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> ImportResult:
    """Import pasted text into the controller's grid and persist it.

    Raises:
        ValidationError: nothing importable in the text
        SessionError: no active session
    """
    start_time = datetime.now(UTC)
    parsed = paste_parser.parse(text, controller.schema)
    if parsed.unmatched_headers:
        logger.warning(f"unmatched headers ignored: {', '.join(parsed.unmatched_headers)}")

    commands = controller.bulk_import(parsed)
    batch = next(c for c in commands if c.op is CommandOp.INSERT)

    with ProgressTracker(len(commands), description="Importing rows", enabled=show_progress) as progress:
        result = dispatch(controller, store, commands, error_log=error_log, progress=progress)

    batch_failed = any(f.command.command_id == batch.command_id for f in result.failures)
    imported = 0 if batch_failed else len(batch.row_keys)

    end_time = datetime.now(UTC)
    elapsed = (end_time - start_time).total_seconds()
    throughput = imported / elapsed if elapsed > 0 else 0.0
    return ImportResult(
        parsed_rows=len(parsed.rows),
        imported_rows=imported,
        skipped_rows=len(parsed.rows) - len(batch.row_keys),
        unmatched_headers=list(parsed.unmatched_headers),
        dispatch=result,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=throughput,
    )
