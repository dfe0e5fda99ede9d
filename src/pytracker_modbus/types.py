"""Core data model: device categories, addressing modes, codecs, FieldSpec and ResultRow."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .errors import InvalidFieldSpecError


class DeviceCategory(str, Enum):
    """Device categories polled at a site."""

    ROW = "row"
    WEATHER = "weather"
    REPEATER = "repeater"
    NETWORK = "network"
    ASSETS = "assets"  # position addressing only


class AddressingMode(str, Enum):
    """Register paging convention: 1-based TTID slots or 0-based position slots."""

    TTID = "ttid"
    POSITION = "position"


class CanonicalCodec(str, Enum):
    """Canonical decoder kinds that codec aliases resolve to."""

    ASCII = "ascii"
    FLOAT32 = "float32"
    INT32 = "int32"
    UINT32 = "uint32"
    UINT64 = "uint64"
    INT64 = "int64"
    INT16 = "int16"
    UINT16 = "uint16"
    BOOLEAN = "boolean"
    HEX = "hex"


class RowStatus(str, Enum):
    """Outcome tag of one ResultRow."""

    OK = "ok"
    DIAGNOSTIC = "diagnostic"
    UNKNOWN_CODEC = "unknown_codec"
    INVALID_IDENTIFIER = "invalid_identifier"
    ADDRESS_ERROR = "address_error"
    INVALID_FIELD_SPEC = "invalid_field_spec"
    READ_ERROR = "read_error"


DECODED_STATUSES = frozenset({RowStatus.OK, RowStatus.DIAGNOSTIC, RowStatus.UNKNOWN_CODEC})


@dataclass(frozen=True)
class DecodeDiagnostic:
    """Decoder could not produce a value (too few bytes, unimplemented codec, unknown codec)."""

    message: str

    def __str__(self) -> str:
        return self.message


Value = Union[str, int, float]


@dataclass(frozen=True)
class FieldSpec:
    """One register range to read for a device: label, offset within the block, count, codec name.

    Values are kept as loaded; ``is_valid`` decides whether the poller may fetch it.
    """

    field_id: str
    base_register: int | float
    register_count: int | float
    codec: str = ""

    @property
    def is_valid(self) -> bool:
        base, count = self.base_register, self.register_count
        if isinstance(base, bool) or isinstance(count, bool):
            return False
        if not isinstance(base, (int, float)) or not isinstance(count, (int, float)):
            return False
        if not (math.isfinite(base) and math.isfinite(count)):
            return False
        return base >= 0 and count > 0 and float(base).is_integer() and float(count).is_integer()

    def validate(self) -> None:
        """Raise InvalidFieldSpecError unless the register count and base register are usable."""
        if not self.is_valid:
            raise InvalidFieldSpecError(
                self.field_id,
                f"Invalid field spec {self.field_id!r}: base={self.base_register!r} size={self.register_count!r}",
            )


@dataclass(frozen=True)
class ResultRow:
    """One decode attempt. Decoded rows carry hex and value; error rows carry ``error`` only."""

    identifier: Any
    site: str
    unit_id: int | None
    field_id: str
    starting_address: int | None
    register_count: Any
    status: RowStatus
    combined_hex: str | None = None
    decoded_value: Value | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status not in DECODED_STATUSES

    @property
    def hex_cell(self) -> str:
        """CombinedHex report cell: uppercase hex, or the error tag for failed rows."""
        if self.is_error:
            return self.error or ""
        return (self.combined_hex or "").upper()

    def as_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "site": self.site,
            "unit_id": self.unit_id,
            "field_id": self.field_id,
            "starting_address": self.starting_address,
            "register_count": self.register_count,
            "status": self.status.value,
            "combined_hex": self.combined_hex,
            "decoded_value": (
                self.decoded_value.message
                if isinstance(self.decoded_value, DecodeDiagnostic)
                else self.decoded_value
            ),
            "error": self.error,
        }
