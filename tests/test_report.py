"""Tests for CSV/HTML report rendering and index pages."""

import csv
from pathlib import Path

from pytracker_modbus import AddressingMode, DeviceCategory, ResultRow, RowStatus
from pytracker_modbus.report import (
    RunReport,
    render_category_html,
    row_cells,
    write_category_report,
    write_master_index,
    write_run_index,
)


def _row(identifier: object, field_id: str, value: object = 1, status: RowStatus = RowStatus.OK) -> ResultRow:
    if status in (RowStatus.OK, RowStatus.DIAGNOSTIC, RowStatus.UNKNOWN_CODEC):
        return ResultRow(identifier, "site1", 1, field_id, 0, 1, status, combined_hex="00ab", decoded_value=value)
    return ResultRow(identifier, "site1", 1, field_id, 0, 1, status, error="Error: timeout")


def test_row_cells_quote_hex_for_decoded_rows() -> None:
    cells = row_cells(_row(5, "Angle"))
    assert cells == ["5", "Angle", "site1", "1", "0", "1", "'00AB", "1"]


def test_row_cells_error_tag_in_hex_column() -> None:
    cells = row_cells(_row(5, "Angle", status=RowStatus.READ_ERROR))
    assert cells[6] == "Error: timeout"
    assert cells[7] == ""


def test_write_category_report(tmp_path: Path) -> None:
    rows = [_row(1, "Device Type", "TRK"), _row(1, "Angle", 3.5), _row(2, "Device Type", status=RowStatus.READ_ERROR)]
    rep = write_category_report(
        rows, "site1", DeviceCategory.ROW, AddressingMode.TTID, tmp_path, [DeviceCategory.ROW, DeviceCategory.NETWORK]
    )
    assert rep.csv_path == tmp_path / "ttid_sorted" / "site1_row_modbus_data.csv"
    assert rep.identifiers == 2
    assert rep.rows == 3
    assert rep.errors == 1

    with open(rep.csv_path, newline="", encoding="utf-8") as f:
        data = list(csv.reader(f))
    assert data[0] == ["TTID", "ID", "Site", "UnitID", "StartingAddress", "Size", "CombinedHex", "DecodedValue"]
    assert [r[1] for r in data[1:]] == ["Device Type", "Angle", "Device Type"]

    page = rep.html_path.read_text(encoding="utf-8")
    assert "TTID: 1 | DeviceType: TRK" in page
    assert page.index("TTID: 1") < page.index("TTID: 2")
    assert 'class="error"' in page
    assert "site1_network_modbus_data.html" in page


def test_position_report_names(tmp_path: Path) -> None:
    rep = write_category_report(
        [_row(0, "X")], "s", DeviceCategory.ASSETS, AddressingMode.POSITION, tmp_path, [DeviceCategory.ASSETS]
    )
    assert rep.html_path == tmp_path / "legacy_unsorted" / "s_assets_multi_position_modbus_data.html"
    assert "Position: 0" in rep.html_path.read_text(encoding="utf-8")


def test_html_escapes_cell_text() -> None:
    page = render_category_html(
        [_row(1, "<b>x</b>", "<script>")], "s", DeviceCategory.ROW, AddressingMode.TTID, [DeviceCategory.ROW]
    )
    assert "<script>" not in page
    assert "&lt;script&gt;" in page


def test_index_pages(tmp_path: Path) -> None:
    rep = write_category_report([_row(1, "A")], "s", DeviceCategory.ROW, AddressingMode.TTID, tmp_path, [DeviceCategory.ROW])
    run = RunReport(name="TTID Sorted", mode=AddressingMode.TTID, reports=[rep], errors=["TTID Sorted / network: down"])
    index = write_run_index("s", run, tmp_path)
    assert index == tmp_path / "ttid_sorted" / "s_index.html"
    text = index.read_text(encoding="utf-8")
    assert "s_row_modbus_data.html" in text
    assert "network: down" in text

    master = write_master_index("s", [run], ["Legacy Unsorted: missing"], tmp_path)
    text = master.read_text(encoding="utf-8")
    assert "ttid_sorted/s_index.html" in text
    assert "Legacy Unsorted: missing" in text
