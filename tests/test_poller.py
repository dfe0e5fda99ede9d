"""Tests for the register poller: ordering, error rows, hex assembly and decode."""

from unittest.mock import MagicMock

import pytest

from pytracker_modbus import (
    AddressingMode,
    DeviceCategory,
    FieldSpec,
    ModbusConnectionError,
    ModbusIOError,
    RowStatus,
    poll,
)
from pytracker_modbus.poller import INVALID_FIELD_SPEC, INVALID_IDENTIFIER, decode_registers


@pytest.fixture
def reader() -> MagicMock:
    return MagicMock(return_value=[0x4048, 0xF5C3])


def test_row_float_scenario(reader: MagicMock) -> None:
    specs = [FieldSpec("Angle", 0, 2, "float32")]
    [row] = poll(DeviceCategory.ROW, [101], specs, reader, site="10.0.0.5")
    reader.assert_called_once_with(2, 0, 2)
    assert row.status == RowStatus.OK
    assert row.unit_id == 2
    assert row.starting_address == 0
    assert row.combined_hex == "4048f5c3"
    assert row.decoded_value == pytest.approx(3.140000104904175)
    assert row.decoded_value == 3.140000104904175
    assert row.site == "10.0.0.5"
    assert row.error is None


def test_network_ttid_scenario() -> None:
    read = MagicMock(return_value=[7])
    [row] = poll("network", ["1"], [FieldSpec("Firmware", 10, 1, "u16")], read)
    read.assert_called_once_with(100, 10, 1)
    assert row.decoded_value == 7
    assert row.identifier == 1


def test_network_position_mode() -> None:
    read = MagicMock(return_value=[1])
    poll(DeviceCategory.NETWORK, [0, 2], [FieldSpec("X", 10, 1, "u16")], read, mode=AddressingMode.POSITION)
    assert [c.args for c in read.call_args_list] == [(0, 10, 1), (0, 2 * 512 + 10, 1)]


def test_rows_ordered_identifier_then_field(reader: MagicMock) -> None:
    specs = [FieldSpec("A", 0, 2, "float"), FieldSpec("B", 4, 2, "hex"), FieldSpec("C", 8, 2, "u32")]
    rows = poll("weather", [3, 1, 2], specs, reader)
    assert [(r.identifier, r.field_id) for r in rows] == [
        (ttid, fid) for ttid in (3, 1, 2) for fid in ("A", "B", "C")
    ]
    assert all(r.unit_id == 101 for r in rows)


def test_invalid_identifier_row_skips_fields(reader: MagicMock) -> None:
    specs = [FieldSpec("A", 0, 2, "float"), FieldSpec("B", 4, 2, "float")]
    rows = poll("row", ["abc", 1], specs, reader)
    assert rows[0].status == RowStatus.INVALID_IDENTIFIER
    assert rows[0].hex_cell == INVALID_IDENTIFIER
    assert rows[0].decoded_value is None
    assert [r.field_id for r in rows[1:]] == ["A", "B"]
    assert reader.call_count == 2


def test_row_ttid_zero_is_address_error(reader: MagicMock) -> None:
    rows = poll("row", [0, 5], [FieldSpec("A", 0, 2, "float")], reader)
    assert rows[0].status == RowStatus.ADDRESS_ERROR
    assert rows[0].error.startswith("Error: ")
    assert rows[1].status == RowStatus.OK
    reader.assert_called_once_with(1, 4 * 512, 2)


def test_unknown_category_yields_error_rows_per_identifier(reader: MagicMock) -> None:
    rows = poll("inverter", [1, 2], [FieldSpec("A", 0, 2, "float")], reader)
    assert [r.status for r in rows] == [RowStatus.ADDRESS_ERROR, RowStatus.ADDRESS_ERROR]
    assert "inverter" in rows[0].error
    reader.assert_not_called()


def test_invalid_field_spec_not_fetched(reader: MagicMock) -> None:
    specs = [FieldSpec("bad", 0, 0, "u16"), FieldSpec("nan", float("nan"), 1, "u16"), FieldSpec("ok", 0, 2, "float")]
    rows = poll("repeater", [1], specs, reader)
    assert [r.status for r in rows] == [RowStatus.INVALID_FIELD_SPEC, RowStatus.INVALID_FIELD_SPEC, RowStatus.OK]
    assert rows[0].error == INVALID_FIELD_SPEC
    reader.assert_called_once_with(102, 0, 2)


def test_read_error_does_not_block_later_fields() -> None:
    read = MagicMock(side_effect=[ModbusIOError("Illegal data address"), [0x0001], TimeoutError("timed out"), [0x0002]])
    specs = [FieldSpec("A", 0, 1, "u16"), FieldSpec("B", 1, 1, "u16")]
    rows = poll("weather", [1, 2], specs, read)
    assert [r.status for r in rows] == [RowStatus.READ_ERROR, RowStatus.OK, RowStatus.READ_ERROR, RowStatus.OK]
    assert rows[0].error == "Error: Illegal data address"
    assert rows[0].combined_hex is None
    assert rows[0].decoded_value is None
    assert rows[2].error == "Error: timed out"
    assert rows[3].decoded_value == 2


def test_connection_error_propagates() -> None:
    read = MagicMock(side_effect=ModbusConnectionError("Failed to connect"))
    with pytest.raises(ModbusConnectionError):
        poll("weather", [1], [FieldSpec("A", 0, 1, "u16")], read)


def test_negative_words_normalized(reader: MagicMock) -> None:
    reader.return_value = [-1, 0]
    [row] = poll("weather", [1], [FieldSpec("A", 0, 2, "hex")], reader)
    assert row.combined_hex == "ffff0000"
    assert row.decoded_value == "0xFFFF0000"


def test_unknown_codec_tagged_with_name(reader: MagicMock) -> None:
    [row] = poll("weather", [1], [FieldSpec("A", 0, 2, "widget")], reader)
    assert row.status == RowStatus.UNKNOWN_CODEC
    assert "widget" in row.decoded_value
    assert not row.is_error


def test_empty_codec_yields_empty_value(reader: MagicMock) -> None:
    [row] = poll("weather", [1], [FieldSpec("A", 0, 2, "")], reader)
    assert row.status == RowStatus.OK
    assert row.decoded_value is None


def test_int64_diagnostic(reader: MagicMock) -> None:
    [row] = poll("weather", [1], [FieldSpec("A", 0, 2, "i64")], reader)
    assert row.status == RowStatus.DIAGNOSTIC
    assert row.combined_hex == "00000000" + "4048f5c3"
    assert "not implemented" in row.decoded_value


def test_decode_registers_pads_short_reads() -> None:
    combined, status, value = decode_registers([0x0001], "uint32")
    assert combined == "00000001"
    assert status == RowStatus.OK
    assert value == 1


def test_decode_registers_keeps_oversized_reads() -> None:
    combined, _status, value = decode_registers([1, 2, 3], "u16")
    assert combined == "000100020003"
    assert value == 1


def test_rows_are_immutable(reader: MagicMock) -> None:
    [row] = poll("weather", [1], [FieldSpec("A", 0, 2, "float")], reader)
    with pytest.raises(AttributeError):
        row.decoded_value = 0  # type: ignore[misc]
