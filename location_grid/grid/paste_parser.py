from __future__ import annotations

from dataclasses import dataclass, field

from location_grid.models.column import EntitySchema

"""Paste parser for clipboard-style tab separated text.

Spreadsheet "copy" produces rows separated by newlines and cells separated
by tabs. The parser:

1. normalizes line endings (\\r\\n, \\r -> \\n) and drops blank lines
2. splits each line on tabs
3. treats the first line as a header row when there is more than one line
   and the first line has more than 2 cells; headers are matched
   case-insensitively (trimmed, quotes removed) against the schema's alias
   map, column keys and column labels
4. otherwise maps cells positionally onto the grid's column order

Unmatched header columns are ignored, short rows are padded with None, and
output order matches input line order. Values stay as (cleaned) strings;
type coercion is the codec's job.
"""

__all__ = [
    "ParsedPaste",
    "PastePreview",
    "split_cells",
    "parse",
    "preview",
    "clean_cell",
    "clean_header",
    "resolve_header",
]

HEADER_MIN_CELLS = 3  # 先頭行が 2 セルより多い場合のみヘッダ扱い
PREVIEW_HEADER_COUNT = 5


@dataclass(frozen=True)
class ParsedPaste:
    rows: list[dict[str, str | None]]  # column key -> cleaned cell text
    detected_headers: list[str] | None = None  # Raw header cells when a header row was used
    unmatched_headers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PastePreview:
    """What an import of the pasted text would do, before any mutation."""
    total_rows: int
    data_rows: int
    columns: int
    first_headers: list[str]

    @property
    def has_headers(self) -> bool:
        return self.data_rows < self.total_rows


def _lines(text: str) -> list[str]:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in normalized.split("\n") if line.strip()]


def split_cells(text: str) -> list[list[str]]:
    """Split pasted text into a grid of raw cell strings (blank lines dropped)."""
    return [line.split("\t") for line in _lines(text)]


def clean_cell(cell: str | None) -> str | None:
    """Trim a cell and remove surrounding quotes; empty -> None."""
    if cell is None:
        return None
    value = cell.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value if value != "" else None


def clean_header(cell: str) -> str:
    return cell.replace('"', "").strip().lower()


def _looks_like_header(grid: list[list[str]]) -> bool:
    return len(grid) > 1 and len(grid[0]) >= HEADER_MIN_CELLS


def resolve_header(header: str, schema: EntitySchema) -> str | None:
    alias = schema.header_aliases.get(header)
    if alias is not None and schema.column(alias) is not None:
        return alias
    for col in schema.columns:
        if col.key == header or col.label.lower() == header:
            return col.key
    return None


def parse(text: str, schema: EntitySchema) -> ParsedPaste:
    """Parse clipboard text into raw rows keyed by column key."""
    grid = split_cells(text or "")
    if not grid:
        return ParsedPaste(rows=[], detected_headers=None)

    detected: list[str] | None = None
    unmatched: list[str] = []
    if _looks_like_header(grid):
        detected = grid[0]
        mapping: list[str | None] = []
        for raw in detected:
            key = resolve_header(clean_header(raw), schema)
            if key is None and raw.strip():
                unmatched.append(raw.strip())
            mapping.append(key)
        data = grid[1:]
    else:
        mapping = list(schema.column_keys)
        data = grid

    mapped_keys = [k for k in mapping if k is not None]
    rows: list[dict[str, str | None]] = []
    for cells in data:
        # 短い行 (末尾タブ欠落) は None 埋め
        row: dict[str, str | None] = {k: None for k in mapped_keys}
        for index, key in enumerate(mapping):
            if key is None or index >= len(cells):
                continue
            value = clean_cell(cells[index])
            # 同じ列に複数ヘッダが対応した場合は最初の非空値を採用
            if row.get(key) is None:
                row[key] = value
        rows.append(row)

    return ParsedPaste(rows=rows, detected_headers=detected, unmatched_headers=unmatched)


def preview(text: str) -> PastePreview | None:
    """Summarize pasted text for the import dialog; None when nothing was pasted."""
    if not text or not text.strip():
        return None
    grid = split_cells(text)
    if not grid:
        return None
    first = grid[0]
    has_headers = _looks_like_header(grid)
    headers = [h.replace('"', "").strip() for h in first[:PREVIEW_HEADER_COUNT]]
    return PastePreview(
        total_rows=len(grid),
        data_rows=len(grid) - 1 if has_headers else len(grid),
        columns=len(first),
        first_headers=[h for h in headers if h],
    )
