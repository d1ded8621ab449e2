from __future__ import annotations
import datetime as dt
import pandas as pd
import pytest
from pathlib import Path
from location_grid.excel.reader import SheetReadError, frame_to_tsv, read_clipboard_text, read_table


def _make_excel(tmp_path: Path, name: str, sheets: dict[str, list[list[object]]]) -> Path:
    p = tmp_path / name
    with pd.ExcelWriter(p) as writer:
        for sheet, rows in sheets.items():
            df = pd.DataFrame(rows)
            df.to_excel(writer, sheet_name=sheet, header=False, index=False)
    return p


def test_xlsx_to_clipboard_text(tmp_path: Path):
    excel = _make_excel(
        tmp_path, "locations.xlsx",
        {
            "Locations": [
                ["Location Name", "City", "Total TIV"],
                ["Main Plant", "Austin", 1500.0],
                [None, None, None],
                ["Depot", "Reno", 2.5],
            ]
        },
    )
    text = read_clipboard_text(excel, sheet="Locations")
    assert text.split("\n") == [
        "Location Name\tCity\tTotal TIV",
        "Main Plant\tAustin\t1500",
        "Depot\tReno\t2.5",
    ]


def test_keep_na_strings(tmp_path: Path):
    excel = _make_excel(tmp_path, "na.xlsx", {"Sheet1": [["Location Name", "State"], ["Site", "NA"]]})
    assert read_clipboard_text(excel).split("\n")[1] == "Site\t"
    assert read_clipboard_text(excel, keep_na_strings=["NA"]).split("\n")[1] == "Site\tNA"


def test_csv_is_read(tmp_path: Path):
    p = tmp_path / "rows.csv"
    p.write_text("Location Name,City,State\nHQ,Boise,ID\n", encoding="utf-8")
    assert read_clipboard_text(p) == "Location Name\tCity\tState\nHQ\tBoise\tID"


def test_tsv_passthrough_strips_bom(tmp_path: Path):
    p = tmp_path / "paste.tsv"
    p.write_text("\ufeffLocation Name\tCity\nHQ\tBoise\n", encoding="utf-8")
    assert read_clipboard_text(p) == "Location Name\tCity\nHQ\tBoise\n"


def test_missing_file(tmp_path: Path):
    with pytest.raises(SheetReadError):
        read_table(tmp_path / "missing.xlsx")
    with pytest.raises(SheetReadError):
        read_clipboard_text(tmp_path / "missing.tsv")


def test_unreadable_workbook(tmp_path: Path):
    p = tmp_path / "broken.xlsx"
    p.write_bytes(b"not a zip file")
    with pytest.raises(SheetReadError, match="broken.xlsx"):
        read_table(p)


def test_frame_to_tsv_cell_rendering():
    df = pd.DataFrame([[dt.datetime(2024, 5, 1), dt.datetime(2024, 5, 1, 13, 30), "a\tb\nc", 7.0]], dtype=object)
    assert frame_to_tsv(df) == "2024-05-01\t2024-05-01T13:30:00\ta b c\t7"
