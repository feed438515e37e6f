"""RegisterReader: one-shot pymodbus reads that hand the engine a register snapshot."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pymodbus.client import ModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException

from .errors import ModbusIOError
from .snapshot import RegisterSnapshot, make_snapshot

logger = logging.getLogger(__name__)


class ReadFunction(str, Enum):
    """Modbus read function codes."""

    FC1 = "FC1"  # coils
    FC2 = "FC2"  # discrete inputs
    FC3 = "FC3"  # holding registers
    FC4 = "FC4"  # input registers

    @property
    def is_bit_read(self) -> bool:
        return self in (ReadFunction.FC1, ReadFunction.FC2)

    @property
    def max_count(self) -> int:
        return 2000 if self.is_bit_read else 125


_CLIENT_METHOD = {
    ReadFunction.FC1: "read_coils",
    ReadFunction.FC2: "read_discrete_inputs",
    ReadFunction.FC3: "read_holding_registers",
    ReadFunction.FC4: "read_input_registers",
}


@dataclass(frozen=True)
class ReadResult:
    """One block read: where it came from plus the register snapshot."""

    function: ReadFunction
    address: int
    count: int
    registers: RegisterSnapshot

    def as_dict(self) -> dict[str, Any]:
        """Shape accepted by extract_registers() and detect_input()."""
        return {
            "function_code": self.function.value,
            "address": self.address,
            "quantity": self.count,
            "data": list(self.registers),
        }


class RegisterReader:
    """
    Thin wrapper over pymodbus ModbusTcpClient: connect, read one block, close.
    No polling and no reconnect loop; a failed read raises ModbusIOError.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        unit_id: int = 1,
        timeout: float = 3.0,
    ) -> None:
        self._host = host
        self._port = port
        self._unit_id = unit_id
        self._timeout = timeout
        self._client: ModbusTcpClient | None = None

    def _get_client(self) -> ModbusTcpClient:
        if self._client is None:
            self._client = ModbusTcpClient(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
            )
            if not self._client.connect():
                self._client = None
                raise ModbusIOError(f"Failed to connect to {self._host}:{self._port}")
        return self._client

    def connect(self) -> None:
        """Establish TCP connection to the device."""
        self._get_client()

    def close(self) -> None:
        """Close the TCP connection."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    def __enter__(self) -> "RegisterReader":
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def read(self, function: ReadFunction | str, address: int, count: int) -> ReadResult:
        """
        Read ``count`` items starting at ``address``. Coil/discrete bits come back
        as 0/1 registers so every function yields the same snapshot type.
        """
        function = ReadFunction(function)
        if address < 0:
            raise ValueError(f"address must be >= 0, got {address}")
        if not 1 <= count <= function.max_count:
            raise ValueError(f"count for {function.value} must be between 1 and {function.max_count}, got {count}")

        client = self._get_client()
        method = getattr(client, _CLIENT_METHOD[function])
        try:
            rr = method(address, count=count, device_id=self._unit_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), function=function.value, address=address, cause=e) from e

        if rr.isError():
            raise ModbusIOError(
                str(rr),
                function=function.value,
                address=address,
                cause=getattr(rr, "exception", None),
            )

        if function.is_bit_read:
            bits = getattr(rr, "bits", None)
            if not bits or len(bits) < count:
                raise ModbusIOError("Short bit response", function=function.value, address=address)
            # pymodbus pads bit responses to a multiple of 8
            values = [1 if b else 0 for b in bits[:count]]
        else:
            registers = getattr(rr, "registers", None)
            if not registers or len(registers) < count:
                raise ModbusIOError("Short register response", function=function.value, address=address)
            values = [int(r) & 0xFFFF for r in registers[:count]]

        logger.debug("%s read at %d: %d values", function.value, address, len(values))
        return ReadResult(function=function, address=address, count=count, registers=make_snapshot(values))
