from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from location_grid.db.store import PersistenceError, PersistenceStore
from location_grid.logging.error_log import ErrorLogBuffer
from location_grid.models.command import CommandOp, GridFailure, PersistCommand
from location_grid.models.dispatch_result import CallStatsAccumulator, DispatchResult
from location_grid.models.error_record import ErrorRecord
from location_grid.services.controller import GridController
from location_grid.services.progress import ProgressTracker

"""Command dispatch: runs PersistCommands against a store.

Commands are issued in FIFO order. Each result is handed back to the
controller (confirm / fail); follow-up commands it returns are appended to
the queue. A PersistenceError never aborts the run: it is routed to
controller.fail(), recorded in the error log and counted. No retries.
"""

__all__ = [
    "dispatch",
    "execute_command",
]

logger = logging.getLogger(__name__)


def execute_command(store: PersistenceStore, command: PersistCommand) -> list[dict[str, Any]]:
    """Issue one command; returns the records the store sent back."""
    if command.op is CommandOp.INSERT:
        return store.insert(command.entity, command.organization_id, list(command.payload))
    if command.op is CommandOp.UPDATE:
        return [store.update(command.entity, command.organization_id, command.row_keys[0], command.payload[0])]
    store.delete(command.entity, command.organization_id, list(command.row_keys))
    return []


def dispatch(
    controller: GridController,
    store: PersistenceStore,
    commands: Iterable[PersistCommand],
    *,
    error_log: ErrorLogBuffer | None = None,
    progress: ProgressTracker | None = None,
) -> DispatchResult:
    start_time = datetime.now(UTC)
    queue: deque[PersistCommand] = deque(commands)
    if progress is not None:
        progress.add_commands(len(queue) - progress.total_commands)

    stats = CallStatsAccumulator()
    succeeded = 0
    failures: list[GridFailure] = []

    while queue:
        command = queue.popleft()
        if progress is not None:
            progress.start_command(command)
        call_start = time.perf_counter()
        try:
            records = execute_command(store, command)
        except PersistenceError as e:
            stats.add_call_time(time.perf_counter() - call_start)
            followups: Sequence[PersistCommand] = controller.fail(command, e)
            failure = controller.failures[-1]
            failures.append(failure)
            if error_log is not None:
                error_log.append(ErrorRecord.from_failure(failure))
            logger.error(
                f"{command.op.value} {command.entity} rows={len(command.row_keys)} failed: {failure.message}"
            )
            ok = False
        else:
            stats.add_call_time(time.perf_counter() - call_start)
            followups = controller.confirm(command, records)
            succeeded += 1
            ok = True
        if followups:
            queue.extend(followups)
            if progress is not None:
                progress.add_commands(len(followups))
        if progress is not None:
            progress.finish_command(success=ok)

    end_time = datetime.now(UTC)
    total_calls, avg_call, p95_call = stats.get_stats()
    return DispatchResult(
        succeeded=succeeded,
        failed=len(failures),
        failures=failures,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        total_calls=total_calls,
        avg_call_seconds=avg_call,
        p95_call_seconds=p95_call,
    )
