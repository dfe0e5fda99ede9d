"""Exceptions for pytracker-modbus: identifiers, categories, field specs, transport, remote schema."""


class PyTrackerModbusError(Exception):
    """Base exception for pytracker-modbus."""

    pass


class InvalidIdentifierError(PyTrackerModbusError):
    """Raised when a TTID or position cannot address a register block."""

    def __init__(self, identifier: object, message: str | None = None) -> None:
        self.identifier = identifier
        self._msg = message or f"Invalid identifier: {identifier!r}"
        super().__init__(self._msg)


class UnknownDeviceCategoryError(PyTrackerModbusError):
    """Raised when no addressing rule exists for a device category / addressing mode pair."""

    def __init__(self, category: str, message: str | None = None) -> None:
        self.category = category
        self._msg = message or f"Unknown device type: {category}"
        super().__init__(self._msg)


class InvalidFieldSpecError(PyTrackerModbusError):
    """Raised when a field spec has a non-positive register count or a bad base register."""

    def __init__(self, field_id: str, message: str | None = None) -> None:
        self.field_id = field_id
        self._msg = message or f"Invalid field spec: {field_id!r}"
        super().__init__(self._msg)


class FieldSpecError(PyTrackerModbusError):
    """Raised when a field spec file is missing or is not a JSON list."""

    pass


class ModbusIOError(PyTrackerModbusError):
    """Raised when a Modbus read fails (wraps pymodbus exceptions and exception responses)."""

    def __init__(
        self,
        message: str,
        *,
        unit_id: int | None = None,
        address: int | None = None,
        count: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.unit_id = unit_id
        self.address = address
        self.count = count
        self.cause = cause
        super().__init__(message)


class ModbusConnectionError(ModbusIOError):
    """Raised when the TCP session to a site cannot be established; aborts the category run."""

    pass


class RemoteSchemaMismatch(PyTrackerModbusError):
    """Raised inside the mode toggle when the GraphQL schema rejects the selection or an input flag."""

    SELECTION = "selection"
    INPUT = "input"

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)
