from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet reader for file imports.

Turns an .xlsx sheet (pandas + openpyxl), a .csv file or a clipboard dump
(.tsv / .txt) into tab-separated text, the same shape a user pastes into the
grid, so file imports go through the paste parser unchanged.

Cells pandas reads as NaN become empty cells. keep_na_strings lists strings
(for example "NA", a state-like code) that must survive as text instead of
being turned into NaN.
"""

__all__ = [
    "SheetReadError",
    "read_table",
    "read_clipboard_text",
    "frame_to_tsv",
]

TEXT_SUFFIXES = {".tsv", ".txt"}


class SheetReadError(Exception):
    """Raised when the input file cannot be read as a table."""


def _na_options(keep_na_strings: list[str] | None) -> dict[str, Any]:
    # pandas の既定 NA 文字列集合から keep_na_strings を除外
    if not keep_na_strings:
        return {"keep_default_na": True, "na_values": None}
    import pandas._libs.parsers as parsers

    custom_na = parsers.STR_NA_VALUES - set(keep_na_strings)
    return {"keep_default_na": False, "na_values": list(custom_na)}


def read_table(path: Path, sheet: str | int = 0, keep_na_strings: list[str] | None = None) -> pd.DataFrame:
    """Read the raw table (no header handling) from an .xlsx or .csv file."""
    if not path.exists():
        raise SheetReadError(f"file not found: {path}")
    na = _na_options(keep_na_strings)
    try:
        if path.suffix.lower() == ".csv":
            return pd.read_csv(path, header=None, dtype=object, **na)
        return pd.read_excel(path, sheet_name=sheet, header=None, dtype=object, engine="openpyxl", **na)
    except Exception as e:
        raise SheetReadError(f"failed to read {path.name}: {e}") from e


def _cell_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)) or value is pd.NaT:
        return ""
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, dt.datetime):
        # 時刻なしの日付セルは日付のみ
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    # セル内のタブ・改行は貼り付け形式を壊すため空白へ
    return str(value).replace("\t", " ").replace("\r\n", " ").replace("\n", " ")


def frame_to_tsv(df: pd.DataFrame) -> str:
    lines = []
    for row in df.itertuples(index=False, name=None):
        cells = [_cell_text(v) for v in row]
        if any(cells):
            lines.append("\t".join(cells))
    return "\n".join(lines)


def read_clipboard_text(path: Path, sheet: str | int = 0, keep_na_strings: list[str] | None = None) -> str:
    """Return the file content as clipboard-style tab-separated text."""
    if path.suffix.lower() in TEXT_SUFFIXES:
        if not path.exists():
            raise SheetReadError(f"file not found: {path}")
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise SheetReadError(f"failed to read {path.name}: {e}") from e
    return frame_to_tsv(read_table(path, sheet=sheet, keep_na_strings=keep_na_strings))
