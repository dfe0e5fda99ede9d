"""Tests for unit id and start address computation per category and addressing mode."""

import pytest

from pytracker_modbus import (
    AddressingMode,
    DeviceCategory,
    InvalidIdentifierError,
    UnknownDeviceCategoryError,
    compute_start_address,
    compute_unit_id,
)


@pytest.mark.parametrize(
    ("ttid", "unit_id"),
    [(1, 1), (100, 1), (101, 2), (200, 2), (201, 3), (1000, 10), (100_000, 1000)],
)
def test_row_unit_id_banks_of_100(ttid: int, unit_id: int) -> None:
    assert compute_unit_id(DeviceCategory.ROW, ttid) == unit_id


def test_row_unit_id_formula_holds_across_range() -> None:
    for ttid in range(1, 100_001, 37):
        assert compute_unit_id("row", ttid) == (ttid - 1) // 100 + 1


@pytest.mark.parametrize("ttid", [0, -1, -100])
def test_row_rejects_non_positive_ttid(ttid: int) -> None:
    with pytest.raises(InvalidIdentifierError):
        compute_unit_id(DeviceCategory.ROW, ttid)


def test_row_start_address_rebased_per_bank() -> None:
    assert compute_start_address(DeviceCategory.ROW, 1, 1, 0) == 0
    assert compute_start_address(DeviceCategory.ROW, 2, 1, 0) == 512
    assert compute_start_address(DeviceCategory.ROW, 100, 1, 5) == 99 * 512 + 5
    # TTID 101 starts a fresh bank on unit 2
    assert compute_start_address(DeviceCategory.ROW, 101, 2, 0) == 0
    assert compute_start_address(DeviceCategory.ROW, 150, 2, 3) == 49 * 512 + 3


def test_row_start_address_steps_by_block_per_ttid() -> None:
    for ttid in range(1, 100):
        unit = compute_unit_id("row", ttid)
        nxt = compute_unit_id("row", ttid + 1)
        assert compute_start_address("row", ttid + 1, nxt, 7) - compute_start_address("row", ttid, unit, 7) == 512


@pytest.mark.parametrize(
    ("category", "unit_id"),
    [(DeviceCategory.WEATHER, 101), (DeviceCategory.REPEATER, 102), (DeviceCategory.NETWORK, 100)],
)
def test_fixed_unit_ids_regardless_of_identifier(category: DeviceCategory, unit_id: int) -> None:
    for ttid in (1, 2, 99, 100, 101, 5000):
        assert compute_unit_id(category, ttid) == unit_id


@pytest.mark.parametrize("category", ["weather", "repeater", "network"])
def test_flat_paging(category: str) -> None:
    unit = compute_unit_id(category, 1)
    assert compute_start_address(category, 1, unit, 10) == 10
    assert compute_start_address(category, 3, unit, 10) == 2 * 512 + 10
    assert compute_start_address(category, 201, unit, 0) == 200 * 512


def test_network_ttid_mode_scenario() -> None:
    unit = compute_unit_id(DeviceCategory.NETWORK, 1, AddressingMode.TTID)
    assert unit == 100
    assert compute_start_address(DeviceCategory.NETWORK, 1, unit, 10, AddressingMode.TTID) == 10


def test_network_position_mode_has_no_offset() -> None:
    mode = AddressingMode.POSITION
    unit = compute_unit_id(DeviceCategory.NETWORK, 0, mode)
    assert unit == 0
    assert compute_start_address(DeviceCategory.NETWORK, 0, unit, 10, mode) == 10
    assert compute_start_address(DeviceCategory.NETWORK, 1, unit, 10, mode) == 512 + 10


def test_assets_position_mode() -> None:
    mode = AddressingMode.POSITION
    assert compute_unit_id(DeviceCategory.ASSETS, 7, mode) == 1
    assert compute_start_address(DeviceCategory.ASSETS, 2, 1, 4, mode) == 2 * 512 + 4


def test_legacy_sorted_position_units() -> None:
    mode = AddressingMode.POSITION
    assert compute_unit_id(DeviceCategory.ROW, 0, mode) == 1
    assert compute_unit_id(DeviceCategory.WEATHER, 0, mode) == 3
    assert compute_start_address(DeviceCategory.ROW, 2, 1, 4, mode) == 2 * 512 + 4
    assert compute_start_address(DeviceCategory.WEATHER, 0, 3, 0, mode) == 0


def test_category_names_are_case_insensitive() -> None:
    assert compute_unit_id("Weather", 3) == 101
    assert compute_unit_id(" ROW ", 101) == 2


def test_unknown_category_raises() -> None:
    with pytest.raises(UnknownDeviceCategoryError) as exc_info:
        compute_unit_id("inverter", 1)
    assert exc_info.value.category == "inverter"


@pytest.mark.parametrize(
    ("category", "mode"),
    [
        (DeviceCategory.REPEATER, AddressingMode.POSITION),
        (DeviceCategory.ASSETS, AddressingMode.TTID),
    ],
)
def test_unsupported_mode_pairs_raise(category: DeviceCategory, mode: AddressingMode) -> None:
    with pytest.raises(UnknownDeviceCategoryError):
        compute_unit_id(category, 1, mode)
