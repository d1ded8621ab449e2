from __future__ import annotations

from location_grid.models.dispatch_result import ImportResult

"""SUMMARY line rendering for paste / file imports.

Format:
SUMMARY rows={parsed} imported={imported} failed={failed_commands}
skipped={skipped} elapsed_sec={elapsed} throughput_rps={throughput} [mode={mode}]
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Render without scientific notation; integral values without a fraction."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: ImportResult, mode: str | None = None) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> from location_grid.models.dispatch_result import DispatchResult
        >>> result = ImportResult(
        ...     parsed_rows=3, imported_rows=2, skipped_rows=1, unmatched_headers=[],
        ...     dispatch=DispatchResult(succeeded=1, failed=0),
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=1.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY rows=3 imported=2 failed=0 skipped=1 elapsed_sec=2 throughput_rps=1'
        >>> render_summary_line(result, mode="mock")
        'SUMMARY rows=3 imported=2 failed=0 skipped=1 elapsed_sec=2 throughput_rps=1 mode=mock'
    """
    line = (
        f"SUMMARY rows={result.parsed_rows} "
        f"imported={result.imported_rows} "
        f"failed={result.failed_commands} "
        f"skipped={result.skipped_rows} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
    if mode is not None:
        line += f" mode={mode}"
    return line
