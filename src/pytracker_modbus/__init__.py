"""pytracker-modbus: Modbus TCP register polling, decoding and reports for tracker sites."""

__version__ = "0.1.0"

from .addressing import compute_start_address, compute_unit_id
from .client import SiteModbusClient
from .codec import decode_value, normalize_codec
from .errors import (
    FieldSpecError,
    InvalidFieldSpecError,
    InvalidIdentifierError,
    ModbusConnectionError,
    ModbusIOError,
    PyTrackerModbusError,
    RemoteSchemaMismatch,
    UnknownDeviceCategoryError,
)
from .fieldspec import FieldSpecSource, load_field_specs
from .mode import ModeToggleClient, ToggleOutcome, set_modbus_mode
from .poller import poll
from .types import (
    AddressingMode,
    CanonicalCodec,
    DecodeDiagnostic,
    DeviceCategory,
    FieldSpec,
    ResultRow,
    RowStatus,
)

__all__ = [
    "__version__",
    "compute_start_address",
    "compute_unit_id",
    "SiteModbusClient",
    "decode_value",
    "normalize_codec",
    "FieldSpecError",
    "InvalidFieldSpecError",
    "InvalidIdentifierError",
    "ModbusConnectionError",
    "ModbusIOError",
    "PyTrackerModbusError",
    "RemoteSchemaMismatch",
    "UnknownDeviceCategoryError",
    "FieldSpecSource",
    "load_field_specs",
    "ModeToggleClient",
    "ToggleOutcome",
    "set_modbus_mode",
    "poll",
    "AddressingMode",
    "CanonicalCodec",
    "DecodeDiagnostic",
    "DeviceCategory",
    "FieldSpec",
    "ResultRow",
    "RowStatus",
]
