from __future__ import annotations

from location_grid.grid import paste_parser
from location_grid.grid.columns import LOCATIONS


def test_parse_header_row_maps_labels():
    text = "Location Name\tCity\tState\nWarehouse A\tAustin\tTX"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.rows == [{"location_name": "Warehouse A", "city": "Austin", "state": "TX"}]
    assert parsed.detected_headers == ["Location Name", "City", "State"]
    assert parsed.unmatched_headers == []


def test_parse_aliases_and_unmatched_headers():
    text = '"Location Name"\tYr Bldg Updated (Mand if >25 yrs)\tFavorite Color\tID\nHQ\t1999\tblue\t42\n'
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.unmatched_headers == ["Favorite Color"]
    assert parsed.rows == [{"location_name": "HQ", "yr_bldg_updated": "1999", "source_id": "42"}]


def test_parse_derived_column_headers():
    text = "Location Name\tLatitude-Python\tState (from State)\tCondensed CityStateZip\tZipcode Trimmed\nHQ\t30.26\tTX\tAustinTX78701\t78701\n"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.unmatched_headers == []
    assert parsed.rows == [
        {
            "location_name": "HQ",
            "latitude_python": "30.26",
            "state_from_state": "TX",
            "condensed_city_state_zip": "AustinTX78701",
            "zipcode_trimmed": "78701",
        }
    ]


def test_parse_column_key_header():
    text = "location_name\tcity\tstate\nA\tB\tC"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.rows == [{"location_name": "A", "city": "B", "state": "C"}]


def test_parse_without_header_maps_positionally():
    # 2 セル行はヘッダ扱いしない
    text = "Main\tAcme\nSecond\tBeta"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.detected_headers is None
    assert parsed.rows[0]["location_name"] == "Main"
    assert parsed.rows[0]["company"] == "Acme"
    assert parsed.rows[1]["location_name"] == "Second"


def test_single_line_is_never_a_header():
    parsed = paste_parser.parse("Location Name\tCity\tState", LOCATIONS)
    assert parsed.detected_headers is None
    assert parsed.rows[0]["location_name"] == "Location Name"


def test_short_rows_padded_with_none():
    text = "Location Name\tCity\tState\nOnly Name"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert parsed.rows == [{"location_name": "Only Name", "city": None, "state": None}]


def test_blank_lines_and_crlf_ignored():
    text = "Location Name\tCity\tState\r\n\r\nA\tB\tC\r\n\r\n"
    parsed = paste_parser.parse(text, LOCATIONS)
    assert len(parsed.rows) == 1


def test_cells_trimmed_and_unquoted():
    text = 'Location Name\tCity\tState\n  "Quoted Name"  \t \t"TX"'
    row = paste_parser.parse(text, LOCATIONS).rows[0]
    assert row == {"location_name": "Quoted Name", "city": None, "state": "TX"}


def test_empty_text():
    parsed = paste_parser.parse("", LOCATIONS)
    assert parsed.rows == []
    assert paste_parser.preview("  \n ") is None


def test_preview_counts():
    text = "Location Name\tCity\tState\tZip\tCounty\tRegion\nA\tB\tC\tD\tE\tF\nG\tH\tI\tJ\tK\tL"
    info = paste_parser.preview(text)
    assert info is not None
    assert info.total_rows == 3
    assert info.data_rows == 2
    assert info.columns == 6
    assert info.has_headers is True
    assert info.first_headers == ["Location Name", "City", "State", "Zip", "County"]


def test_split_cells():
    assert paste_parser.split_cells("a\tb\n\nc") == [["a", "b"], ["c"]]


def test_clean_helpers():
    assert paste_parser.clean_cell('  "x" ') == "x"
    assert paste_parser.clean_cell("   ") is None
    assert paste_parser.clean_header(' "Location Name" ') == "location name"
