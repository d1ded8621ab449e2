from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

from .command import GridFailure

"""Result models for dispatching persist commands and bulk imports.

DispatchResult aggregates what happened when a batch of commands was sent to
the store; ImportResult adds the paste-level counts used by the SUMMARY line.
"""

__all__ = [
    "DispatchResult",
    "ImportResult",
    "CallStatsAccumulator",
]


@dataclass(frozen=True)
class DispatchResult:
    succeeded: int  # 成功コマンド数
    failed: int  # 失敗コマンド数
    failures: list[GridFailure] = field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None
    elapsed_seconds: float = 0.0
    # Store call timing statistics
    total_calls: int = 0
    avg_call_seconds: float = 0.0
    p95_call_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results for one paste / file import (SUMMARY output)."""
    parsed_rows: int  # Data rows found in the pasted text
    imported_rows: int  # Rows confirmed by the store
    skipped_rows: int  # Empty rows dropped before import
    unmatched_headers: list[str]
    dispatch: DispatchResult
    elapsed_seconds: float
    throughput_rows_per_sec: float

    @property
    def failed_commands(self) -> int:
        return self.dispatch.failed


class CallStatsAccumulator:
    """Collects store call timings and calculates summary statistics."""

    def __init__(self) -> None:
        self.call_times: list[float] = []

    def add_call_time(self, elapsed_seconds: float) -> None:
        self.call_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Returns (total_calls, avg_call_seconds, p95_call_seconds)."""
        if not self.call_times:
            return (0, 0.0, 0.0)

        total = len(self.call_times)
        avg = statistics.mean(self.call_times)
        if total == 1:
            p95 = self.call_times[0]
        else:
            p95 = statistics.quantiles(self.call_times, n=20, method="inclusive")[18]
        return (total, avg, p95)
