"""
Modbus RTU client
Session handling and the public read/write operations
"""

import logging
import struct
from enum import Enum
from typing import Callable, List, Optional

from .codec import DataType, Number, decode_value, encode_value
from .crc import append_crc
from .protocol import (
    build_read_command, build_write_coil_command, build_write_command,
    to_hex, validate_response
)
from .result import Result
from .transport import SerialTransport
from ..config import (
    READ_COILS, READ_DISCRETE_INPUTS, READ_HOLDING_REGISTERS,
    WRITE_MULTIPLE_REGISTERS, WRITE_SINGLE_COIL, get_serial_settings
)

logger = logging.getLogger(__name__)

_UNSET = object()


class ConnectionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class ModbusRTUClient:
    """
    Modbus RTU master over a serial port.

    By default every operation opens the port, runs, and closes it again.
    Calling open() keeps the port open across operations until close().
    Not thread safe: callers sharing an instance must serialize access.
    """

    def __init__(self,
                 port: Optional[str] = None,
                 baudrate: Optional[int] = None,
                 bytesize: Optional[int] = None,
                 stopbits: Optional[float] = None,
                 parity: Optional[str] = None,
                 timeout: Optional[float] = _UNSET,
                 transport: Optional[SerialTransport] = None):
        """
        Initialize the client; unset settings come from the environment

        Args:
            port: Serial port path (MODBUS_PORT)
            baudrate: Baud rate (MODBUS_BAUDRATE)
            bytesize: Data bits (MODBUS_BYTESIZE)
            stopbits: Stop bits (MODBUS_STOPBITS)
            parity: Parity N/E/O (MODBUS_PARITY)
            timeout: Read timeout in seconds, None to block (MODBUS_TIMEOUT)
            transport: Prebuilt transport, overrides the serial settings
        """
        if transport is None:
            settings = get_serial_settings()
            overrides = {
                'port': port,
                'baudrate': baudrate,
                'bytesize': bytesize,
                'stopbits': stopbits,
                'parity': parity,
            }
            settings.update({k: v for k, v in overrides.items() if v is not None})
            if timeout is not _UNSET:
                settings['timeout'] = timeout
            transport = SerialTransport(**settings)

        self.transport = transport
        self.auto_open = True
        self.state = ConnectionState.CLOSED

    @property
    def port(self) -> str:
        return self.transport.port

    @property
    def baudrate(self) -> int:
        return self.transport.baudrate

    @staticmethod
    def get_port_names() -> List[str]:
        """Serial port names present on this host."""
        return SerialTransport.list_ports()

    def is_connected(self) -> bool:
        return self.state is ConnectionState.OPEN and self.transport.is_open

    # ------------------------
    # CONNECTION LIFECYCLE
    # ------------------------
    def open(self) -> Result:
        """Open the port and keep it open across operations until close()."""
        self.auto_open = False
        return self._connect()

    def close(self) -> Result:
        """Close the port and return to per-operation open/close."""
        self.auto_open = True
        return self._dispose()

    def _connect(self) -> Result:
        result = Result()
        try:
            self.transport.open()
            self.state = ConnectionState.OPEN
        except Exception as e:
            self.state = ConnectionState.CLOSED
            logger.error(f"Failed to open {self.port}: {e}")
            result.fail(str(e), e)
        return result

    def _dispose(self) -> Result:
        result = Result()
        try:
            self.transport.close()
        except Exception as e:
            logger.error(f"Error closing {self.port}: {e}")
            result.fail(str(e), e)
        finally:
            self.state = ConnectionState.CLOSED
        return result

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------
    # REQUEST EXECUTION
    # ------------------------
    def send_package(self, command: bytes) -> bytes:
        """
        Send a checksummed frame on the open port and return the raw reply

        Raises:
            serial.SerialException: If the port is closed or the write fails
        """
        return self.transport.send_package(command)

    def _execute(self, build_command: Callable[[], bytes]) -> Result:
        result = Result()
        auto_open = self.auto_open
        try:
            if auto_open:
                opened = self._connect()
                if not opened:
                    return result.fail(opened.err, opened.exception, record=True)

            command = append_crc(build_command())
            result.request = to_hex(command)

            checked = validate_response(self.send_package(command))
            result.response = checked.response
            if not checked:
                return result.fail(checked.err, checked.exception, record=True)
            result.value = checked.value
        except Exception as e:
            logger.error(f"Modbus request failed on {self.port}: {e}")
            result.fail(str(e), e, record=True)
        finally:
            if auto_open:
                self._dispose()
        return result

    # ------------------------
    # READ FUNCTIONS
    # ------------------------
    def read(self, address: str, station_number: int = 1,
             function_code: int = READ_HOLDING_REGISTERS, read_length: int = 1) -> Result:
        """
        Read raw data

        Args:
            address: Starting register address as decimal text
            station_number: Slave station number
            function_code: Function code
            read_length: Number of registers or bits to request

        Returns:
            Result: value is the response frame without its CRC trailer,
            byte-reversed so the payload's last byte comes first
        """
        result = self._execute(
            lambda: build_read_command(address, station_number, function_code, read_length))
        if result:
            result.value = result.value[::-1]
        return result

    def read_value(self, address: str, data_type: DataType, station_number: int = 1,
                   function_code: Optional[int] = None) -> Result:
        """
        Read and decode a typed value, requesting as many registers as it spans

        function_code defaults to read coils for bool, read holding registers
        otherwise.
        """
        data_type = DataType(data_type)
        if function_code is None:
            function_code = READ_COILS if data_type is DataType.BOOL else READ_HOLDING_REGISTERS
        raw = self.read(address, station_number, function_code, data_type.register_count)
        if not raw:
            return raw.derive()
        try:
            return raw.derive(decode_value(raw.value, data_type))
        except (struct.error, IndexError, ValueError) as e:
            logger.error(f"Cannot decode {data_type.value} from {raw.response}: {e}")
            return raw.derive().fail(str(e), e, record=True)

    def read_int16(self, address: str, station_number: int = 1,
                   function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.INT16, station_number, function_code)

    def read_uint16(self, address: str, station_number: int = 1,
                    function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.UINT16, station_number, function_code)

    def read_int32(self, address: str, station_number: int = 1,
                   function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.INT32, station_number, function_code)

    def read_uint32(self, address: str, station_number: int = 1,
                    function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.UINT32, station_number, function_code)

    def read_int64(self, address: str, station_number: int = 1,
                   function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.INT64, station_number, function_code)

    def read_uint64(self, address: str, station_number: int = 1,
                    function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.UINT64, station_number, function_code)

    def read_float(self, address: str, station_number: int = 1,
                   function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.FLOAT, station_number, function_code)

    def read_double(self, address: str, station_number: int = 1,
                    function_code: int = READ_HOLDING_REGISTERS) -> Result:
        return self.read_value(address, DataType.DOUBLE, station_number, function_code)

    def read_coil(self, address: str, station_number: int = 1,
                  function_code: int = READ_COILS) -> Result:
        """Read a coil state"""
        return self.read_value(address, DataType.BOOL, station_number, function_code)

    def read_discrete(self, address: str, station_number: int = 1,
                      function_code: int = READ_DISCRETE_INPUTS) -> Result:
        """Read a discrete input state"""
        return self.read_value(address, DataType.BOOL, station_number, function_code)

    # ------------------------
    # WRITE FUNCTIONS
    # ------------------------
    def write(self, address: str, values: bytes, station_number: int = 1,
              function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        """
        Write raw register payload

        Args:
            address: Starting register address as decimal text
            values: Payload bytes, two per register, sent in the given order
            station_number: Slave station number
            function_code: Function code

        Returns:
            Result: value stays None; the response is only validated
        """
        return self._execute(
            lambda: build_write_command(address, values, station_number, function_code))

    def write_coil(self, address: str, value: bool, station_number: int = 1,
                   function_code: int = WRITE_SINGLE_COIL) -> Result:
        """Write a single coil"""
        return self._execute(
            lambda: build_write_coil_command(address, value, station_number, function_code))

    def write_value(self, address: str, value: Number, data_type: DataType,
                    station_number: int = 1,
                    function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        """Encode a typed value and write it to consecutive registers."""
        try:
            data_type = DataType(data_type)
            if data_type is DataType.BOOL:
                return self.write_coil(address, bool(value), station_number)
            payload = encode_value(value, data_type)
        except (struct.error, ValueError, TypeError) as e:
            logger.error(f"Cannot encode {value!r} as {data_type}: {e}")
            return Result().fail(str(e), e, record=True)
        return self.write(address, payload, station_number, function_code)

    def write_int16(self, address: str, value: int, station_number: int = 1,
                    function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.INT16, station_number, function_code)

    def write_uint16(self, address: str, value: int, station_number: int = 1,
                     function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.UINT16, station_number, function_code)

    def write_int32(self, address: str, value: int, station_number: int = 1,
                    function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.INT32, station_number, function_code)

    def write_uint32(self, address: str, value: int, station_number: int = 1,
                     function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.UINT32, station_number, function_code)

    def write_int64(self, address: str, value: int, station_number: int = 1,
                    function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.INT64, station_number, function_code)

    def write_uint64(self, address: str, value: int, station_number: int = 1,
                     function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.UINT64, station_number, function_code)

    def write_float(self, address: str, value: float, station_number: int = 1,
                    function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.FLOAT, station_number, function_code)

    def write_double(self, address: str, value: float, station_number: int = 1,
                     function_code: int = WRITE_MULTIPLE_REGISTERS) -> Result:
        return self.write_value(address, value, DataType.DOUBLE, station_number, function_code)
