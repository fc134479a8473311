"""
Serial transport for Modbus RTU
Sends frames and collects replies from the serial port
"""

import logging
import time
from typing import List, Optional

import serial
import serial.tools.list_ports

from ..config import RESPONSE_WAIT_STEPS

logger = logging.getLogger(__name__)


class SerialTransport:
    """
    Thin wrapper around a pyserial port.

    The port is created closed; open() opens it with the stored settings.
    """

    def __init__(self,
                 port: str = '/dev/ttyACM0',
                 baudrate: int = 9600,
                 bytesize: int = 8,
                 stopbits: float = 1,
                 parity: str = 'N',
                 timeout: Optional[float] = 1.0):
        """
        Args:
            port: Serial port path
            baudrate: Baud rate
            bytesize: Data bits (7 or 8)
            stopbits: Stop bits (1, 1.5 or 2)
            parity: Parity setting (N/E/O)
            timeout: Read timeout in seconds, None to block
        """
        self.port = port
        self.baudrate = baudrate
        self.bytesize = bytesize
        self.stopbits = stopbits
        self.parity = parity
        self.timeout = timeout
        self.serial_conn: Optional[serial.Serial] = None

    @staticmethod
    def list_ports() -> List[str]:
        """Serial port names present on this host."""
        return [port_info.device for port_info in serial.tools.list_ports.comports()]

    @property
    def is_open(self) -> bool:
        return self.serial_conn is not None and self.serial_conn.is_open

    def open(self) -> None:
        """
        Open the port, closing any previous handle first

        Raises:
            serial.SerialException: If the port cannot be opened
        """
        if self.serial_conn is not None:
            self.close()
        self.serial_conn = serial.Serial(
            port=self.port,
            baudrate=self.baudrate,
            bytesize=self.bytesize,
            parity=self.parity,
            stopbits=self.stopbits,
            timeout=self.timeout
        )
        logger.info(f"Opened {self.port} at {self.baudrate} baud")

    def close(self) -> None:
        """Close and release the port."""
        if self.serial_conn is None:
            return
        conn, self.serial_conn = self.serial_conn, None
        conn.close()
        logger.info(f"Closed {self.port}")

    @property
    def in_waiting(self) -> int:
        return self._require_open().in_waiting

    def write(self, frame: bytes) -> int:
        return self._require_open().write(frame)

    def read(self, size: int) -> bytes:
        return self._require_open().read(size)

    def send_package(self, frame: bytes) -> bytes:
        """
        Send a checksummed frame and return the raw reply

        Args:
            frame: Complete request frame including CRC

        Returns:
            bytes: Whatever the device had sent back, possibly empty
        """
        logger.debug(f"Sending: {frame.hex()}")
        self.write(frame)
        response = self.receive()
        logger.debug(f"Received: {response.hex()}")
        return response

    def receive(self) -> bytes:
        """
        Read the reply currently buffered by the port

        Waits 20ms, 40ms and 80ms in turn while nothing has arrived, then
        reads exactly the bytes available. A reply still arriving after
        the last step is returned truncated.
        """
        for delay in RESPONSE_WAIT_STEPS:
            if self.in_waiting:
                break
            time.sleep(delay)

        available = self.in_waiting
        if not available:
            return b''
        return bytes(self.read(available))

    def _require_open(self) -> serial.Serial:
        if self.serial_conn is None:
            raise serial.SerialException(f"Port {self.port} is not open")
        return self.serial_conn
