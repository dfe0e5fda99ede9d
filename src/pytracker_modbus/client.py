"""SiteModbusClient: holding-register reads over one pymodbus TCP connection to a site."""

import logging
from typing import Any

from pymodbus.client import ModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException

from .errors import ModbusConnectionError, ModbusIOError

logger = logging.getLogger(__name__)


class SiteModbusClient:
    """
    Modbus TCP client for one site controller.

    The unit id is sent with each read, so selecting a unit and reading from it happen
    on the same request. One instance serves one category run; reads are sequential.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout: float = 3.0,
        retries: int = 1,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._retries = retries
        self._client: ModbusTcpClient | None = None

    @property
    def host(self) -> str:
        return self._host

    def _get_client(self) -> ModbusTcpClient:
        if self._client is None:
            client = ModbusTcpClient(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
                retries=self._retries,
            )
            if not client.connect():
                raise ModbusConnectionError(f"Failed to connect to {self._host}:{self._port}")
            logger.debug("Connected to %s:%d", self._host, self._port)
            self._client = client
        return self._client

    def connect(self) -> None:
        """Establish the TCP connection. Raises ModbusConnectionError."""
        self._get_client()

    def close(self) -> None:
        """Close the TCP connection."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    def __enter__(self) -> "SiteModbusClient":
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def read_registers(self, unit_id: int, address: int, count: int) -> list[int]:
        """Read ``count`` holding registers at ``address`` from ``unit_id``. Raises ModbusIOError."""
        client = self._get_client()
        try:
            rr = client.read_holding_registers(address, count=count, device_id=unit_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), unit_id=unit_id, address=address, count=count, cause=e) from e

        if rr.isError():
            raise ModbusIOError(
                str(rr),
                unit_id=unit_id,
                address=address,
                count=count,
                cause=getattr(rr, "exception", None),
            )
        registers = getattr(rr, "registers", None)
        if not registers or len(registers) < count:
            raise ModbusIOError(
                "Short register response",
                unit_id=unit_id,
                address=address,
                count=count,
            )
        return [int(r) for r in registers]

    __call__ = read_registers
