from __future__ import annotations

import math
import re
from typing import Any

from location_grid.models.column import ColumnDescriptor, ColumnType

"""Cell value codec.

Converts between raw stored values and the strings users see and type, per
column type tag:

- to_display(raw, column): stored value -> display string
- to_stored(text, column): edit string -> stored value (or None to clear)
- normalize(value, column): any incoming value -> stored value, used by the
  controller so that "no change" detection compares like with like

Empty / None always displays as "" (never "None"). Numeric input that cannot
be parsed clears the field instead of raising.
"""

__all__ = [
    "to_display",
    "to_stored",
    "normalize",
    "parse_number",
    "is_empty",
]

# 通貨記号・桁区切り・空白を除去
_NUMERIC_NOISE = re.compile(r"[$€£¥,\s]")


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def parse_number(text: Any) -> int | float | None:
    """Parse a user-typed number, stripping currency symbols and separators.

    Returns an int for integral values, a float otherwise, None when the text
    is not a finite number.
    """
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        num = float(text)
    else:
        cleaned = _NUMERIC_NOISE.sub("", str(text))
        if cleaned == "":
            return None
        try:
            num = float(cleaned)
        except ValueError:
            return None
    if math.isnan(num) or math.isinf(num):
        return None
    if num.is_integer():
        return int(num)
    return num


def _group(num: float, decimals: int, *, trim: bool) -> str:
    text = f"{num:,.{decimals}f}"
    if trim and "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_display(raw: Any, column: ColumnDescriptor) -> str:
    """Render a stored value for display in the grid."""
    if is_empty(raw):
        return ""

    if column.type is ColumnType.SELECT and column.options:
        opt = column.option_for_value(raw)
        if opt is not None:
            return opt.label
        # 未知の値はそのまま表示 (選択肢の追加・削除に前方互換)
        return str(raw)

    if column.format in ("currency", "number", "decimal"):
        num = parse_number(raw)
        if num is None:
            return str(raw)
        if column.format == "currency":
            text = _group(abs(num), 0, trim=False)
            return f"-${text}" if num < 0 and text != "0" else f"${text}"
        if column.format == "decimal":
            return _group(num, 2, trim=False)
        return _group(num, 3, trim=True)

    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw)


def to_stored(text: Any, column: ColumnDescriptor) -> Any:
    """Convert an edit string to the value to store; None clears the field."""
    if is_empty(text):
        return None

    if column.type.is_numeric:
        return parse_number(text)

    value = str(text)
    if column.type is ColumnType.SELECT:
        if value.strip() == "":
            return None
        opt = column.option_for_text(value)
        return opt.value if opt is not None else value
    if column.type is ColumnType.DATE:
        # ISO 文字列のまま (タイムゾーン変換なし)
        stripped = value.strip()
        return stripped or None
    return value


def normalize(value: Any, column: ColumnDescriptor) -> Any:
    """Normalize a value from any source (typed text, pasted cell, API call)."""
    if isinstance(value, str) or value is None:
        return to_stored(value, column)
    if column.type.is_numeric:
        return parse_number(value)
    return value
