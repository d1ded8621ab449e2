from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

from location_grid.grid.codec import parse_number
from location_grid.models.column import EntitySchema
from location_grid.models.row import Row

"""Pagination / filter / sort view over the in-memory dataset.

derive_view() is a pure function of (rows, ViewState, schema): no hidden
state, the same inputs always produce the same page. ViewState transitions
that change which rows are visible (search, sort, page size) reset the page
index to the first page.
"""

__all__ = [
    "SortDirection",
    "ViewState",
    "PageView",
    "filter_rows",
    "sort_rows",
    "derive_view",
]

ASC = "asc"
DESC = "desc"
SortDirection = str


@dataclass(frozen=True)
class ViewState:
    search_term: str = ""
    page_index: int = 0  # 0 始まり
    page_size: int = 50
    sort_column: str | None = None
    sort_direction: SortDirection = ASC

    def with_search(self, term: str) -> ViewState:
        return replace(self, search_term=term, page_index=0)

    def with_page(self, page_index: int) -> ViewState:
        return replace(self, page_index=max(0, page_index))

    def with_page_size(self, page_size: int) -> ViewState:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        return replace(self, page_size=page_size, page_index=0)

    def with_sort(self, column_key: str) -> ViewState:
        """Header click: asc -> desc -> unsorted; a new column starts at asc."""
        if self.sort_column == column_key:
            if self.sort_direction == ASC:
                return replace(self, sort_direction=DESC, page_index=0)
            return replace(self, sort_column=None, sort_direction=ASC, page_index=0)
        return replace(self, sort_column=column_key, sort_direction=ASC, page_index=0)

    def cleared_sort(self) -> ViewState:
        return replace(self, sort_column=None, sort_direction=ASC)


@dataclass(frozen=True)
class PageView:
    rows: list[Row]
    total_count: int  # Rows matching the search
    page_index: int  # Clamped page index actually shown
    total_pages: int
    start_index: int
    end_index: int  # Exclusive

    @property
    def keys(self) -> list[str]:
        return [r.key for r in self.rows]

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index < self.total_pages - 1


def filter_rows(rows: Sequence[Row], term: str, search_columns: Sequence[str]) -> list[Row]:
    """Case-insensitive substring match against the configured columns."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(rows)
    matched = []
    for row in rows:
        for key in search_columns:
            value = row.get(key)
            if value is not None and needle in str(value).lower():
                matched.append(row)
                break
    return matched


def _sort_value(value: Any, numeric: bool) -> Any:
    if numeric:
        num = parse_number(value)
        return num if num is not None else 0
    return str(value).lower()


def sort_rows(rows: Sequence[Row], column_key: str, direction: SortDirection, numeric: bool = False) -> list[Row]:
    """Stable sort by one column; empty values always sort last."""
    present = [r for r in rows if r.get(column_key) is not None]
    missing = [r for r in rows if r.get(column_key) is None]
    present.sort(key=lambda r: _sort_value(r.get(column_key), numeric), reverse=(direction == DESC))
    return present + missing


def derive_view(rows: Sequence[Row], state: ViewState, schema: EntitySchema) -> PageView:
    visible = filter_rows(rows, state.search_term, schema.search_columns)
    if state.sort_column:
        column = schema.column(state.sort_column)
        numeric = column is not None and column.type.is_numeric
        visible = sort_rows(visible, state.sort_column, state.sort_direction, numeric)

    total = len(visible)
    total_pages = max(1, math.ceil(total / state.page_size))
    page_index = min(max(0, state.page_index), total_pages - 1)
    start = page_index * state.page_size
    end = min(start + state.page_size, total)
    return PageView(
        rows=visible[start:end],
        total_count=total,
        page_index=page_index,
        total_pages=total_pages,
        start_index=start,
        end_index=end,
    )
