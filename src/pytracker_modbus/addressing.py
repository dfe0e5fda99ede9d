"""Address calculator: unit id and absolute start register per device category and addressing mode.

Two paging conventions are in use on site controllers:

- TTID mode: 1-based identifiers. Row boxes are banked 100 TTIDs per unit id, the
  address space restarting for each bank; weather, repeater and network controller
  blocks are paged flat from TTID 1 on a fixed unit id.
- Position mode: 0-based slot indices on a fixed unit id, no offset.

Every identifier owns a block of ``BLOCK_SIZE`` registers.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from .errors import InvalidIdentifierError, UnknownDeviceCategoryError
from .types import AddressingMode, DeviceCategory

logger = logging.getLogger(__name__)

BLOCK_SIZE = 512
ROW_BANK_SIZE = 100

WEATHER_UNIT_ID = 101
REPEATER_UNIT_ID = 102
NETWORK_UNIT_ID = 100
NETWORK_POSITION_UNIT_ID = 0
ASSETS_POSITION_UNIT_ID = 1
LEGACY_ROW_UNIT_ID = 1
LEGACY_WEATHER_UNIT_ID = 3


@dataclass(frozen=True)
class AddressRule:
    """How one (category, mode) pair maps an identifier to a unit id and a block index."""

    unit_id: Callable[[int], int]
    block_index: Callable[[int, int], int]  # (identifier, unit_id) -> slot within the unit


def _row_unit_id(ttid: int) -> int:
    if ttid < 1:
        raise InvalidIdentifierError(ttid, f"Invalid TTID for row boxes: {ttid}")
    return (ttid - 1) // ROW_BANK_SIZE + 1


def _fixed(unit: int) -> Callable[[int], int]:
    return lambda _identifier: unit


_RULES: dict[tuple[DeviceCategory, AddressingMode], AddressRule] = {
    (DeviceCategory.ROW, AddressingMode.TTID): AddressRule(
        _row_unit_id,
        lambda ttid, unit: (ttid - 1) - (unit - 1) * ROW_BANK_SIZE,
    ),
    (DeviceCategory.WEATHER, AddressingMode.TTID): AddressRule(
        _fixed(WEATHER_UNIT_ID), lambda ttid, _unit: ttid - 1
    ),
    (DeviceCategory.REPEATER, AddressingMode.TTID): AddressRule(
        _fixed(REPEATER_UNIT_ID), lambda ttid, _unit: ttid - 1
    ),
    (DeviceCategory.NETWORK, AddressingMode.TTID): AddressRule(
        _fixed(NETWORK_UNIT_ID), lambda ttid, _unit: ttid - 1
    ),
    # Position numbering is 0-based: no -1 here
    (DeviceCategory.NETWORK, AddressingMode.POSITION): AddressRule(
        _fixed(NETWORK_POSITION_UNIT_ID), lambda position, _unit: position
    ),
    (DeviceCategory.ASSETS, AddressingMode.POSITION): AddressRule(
        _fixed(ASSETS_POSITION_UNIT_ID), lambda position, _unit: position
    ),
    # Legacy sorted addressing: row boxes and weather stations on their own units
    (DeviceCategory.ROW, AddressingMode.POSITION): AddressRule(
        _fixed(LEGACY_ROW_UNIT_ID), lambda position, _unit: position
    ),
    (DeviceCategory.WEATHER, AddressingMode.POSITION): AddressRule(
        _fixed(LEGACY_WEATHER_UNIT_ID), lambda position, _unit: position
    ),
}


def parse_category(category: DeviceCategory | str) -> DeviceCategory:
    """Return the DeviceCategory for a name (case-insensitive); raise UnknownDeviceCategoryError."""
    if isinstance(category, DeviceCategory):
        return category
    try:
        return DeviceCategory(str(category or "").strip().lower())
    except ValueError:
        raise UnknownDeviceCategoryError(str(category)) from None


def _rule(category: DeviceCategory | str, mode: AddressingMode) -> AddressRule:
    cat = parse_category(category)
    rule = _RULES.get((cat, AddressingMode(mode)))
    if rule is None:
        raise UnknownDeviceCategoryError(
            cat.value, f"Device type {cat.value!r} has no {AddressingMode(mode).value} addressing"
        )
    return rule


def compute_unit_id(
    category: DeviceCategory | str,
    identifier: int,
    mode: AddressingMode = AddressingMode.TTID,
) -> int:
    """Unit id answering for ``identifier``. Raises InvalidIdentifierError / UnknownDeviceCategoryError."""
    return _rule(category, mode).unit_id(identifier)


def compute_start_address(
    category: DeviceCategory | str,
    identifier: int,
    unit_id: int,
    base_register: int,
    mode: AddressingMode = AddressingMode.TTID,
) -> int:
    """Absolute start register of ``base_register`` inside the identifier's block."""
    slot = _rule(category, mode).block_index(identifier, unit_id)
    return slot * BLOCK_SIZE + base_register


def supported_pairs() -> list[tuple[DeviceCategory, AddressingMode]]:
    return list(_RULES)
