from __future__ import annotations

import pytest

from location_grid.models.dispatch_result import CallStatsAccumulator, DispatchResult, ImportResult

"""Contract test: dispatch / import metrics used by the SUMMARY line."""


def test_call_stats_empty():
    assert CallStatsAccumulator().get_stats() == (0, 0.0, 0.0)


def test_call_stats_single_call():
    acc = CallStatsAccumulator()
    acc.add_call_time(0.25)
    assert acc.get_stats() == (1, 0.25, 0.25)


def test_call_stats_p95():
    acc = CallStatsAccumulator()
    for i in range(1, 21):
        acc.add_call_time(i / 100)
    total, avg, p95 = acc.get_stats()
    assert total == 20
    assert avg == pytest.approx(0.105)
    assert 0.19 <= p95 <= 0.2


def test_failed_commands_follow_dispatch():
    result = ImportResult(
        parsed_rows=2,
        imported_rows=0,
        skipped_rows=0,
        unmatched_headers=[],
        dispatch=DispatchResult(succeeded=0, failed=1),
        elapsed_seconds=0.5,
        throughput_rows_per_sec=0.0,
    )
    assert result.failed_commands == 1
    assert not result.dispatch.ok
