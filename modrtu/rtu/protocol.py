"""
Modbus RTU Protocol Module
Handles request building and response validation for Modbus RTU
"""

import logging
import struct

from .crc import validate_crc
from .result import Result
from ..config import (
    COIL_OFF, COIL_ON,
    READ_HOLDING_REGISTERS, WRITE_MULTIPLE_REGISTERS, WRITE_SINGLE_COIL
)
from ..errors import CRCMismatchError, EmptyResponseError, InvalidAddressError

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Response is empty, check that the device is connected"
CRC_MISMATCH_MESSAGE = "Response CRC16 check failed"


def to_hex(frame: bytes) -> str:
    """Render a frame as space-separated upper-case hex, e.g. '01 03 00 10'."""
    return ' '.join(f'{b:02X}' for b in frame)


def parse_address(address: str) -> int:
    """
    Parse register address text into a 16-bit offset

    The offset is used as given: zero-based, not a register number.

    Args:
        address: Decimal text with an optional leading '+',
            surrounding whitespace allowed

    Returns:
        int: Address in [0, 65535]

    Raises:
        InvalidAddressError: If the text is not an unsigned 16-bit decimal
    """
    if address is None:
        raise InvalidAddressError(address)
    text = str(address).strip()
    digits = text[1:] if text.startswith('+') else text
    if not digits.isdigit() or not digits.isascii():
        raise InvalidAddressError(address)
    value = int(digits)
    if value > 0xFFFF:
        raise InvalidAddressError(address, f"Register address out of range: {address!r}")
    return value


def build_read_command(address: str, station_number: int = 1,
                       function_code: int = READ_HOLDING_REGISTERS,
                       length: int = 1) -> bytes:
    """
    Build request for read functions (coils, discrete inputs, registers)

    Args:
        address: Starting address text
        station_number: Slave station number
        function_code: Function code (0x01, 0x02, 0x03)
        length: Number of registers or bits to read

    Returns:
        bytes: Request frame without CRC
    """
    # Data format: [station, function, address_high, address_low, count_high, count_low]
    return struct.pack('>BBHH', station_number, function_code, parse_address(address), length)


def build_write_command(address: str, values: bytes, station_number: int = 1,
                        function_code: int = WRITE_MULTIPLE_REGISTERS) -> bytes:
    """
    Build request for write multiple registers

    Args:
        address: Starting address text
        values: Register payload, two bytes per register, sent as given
        station_number: Slave station number
        function_code: Function code (0x10)

    Returns:
        bytes: Request frame without CRC
    """
    values = bytes(values)
    register_count = len(values) // 2
    # Data format: [station, function, address, count, byte_count, payload]
    header = struct.pack('>BBHHB', station_number, function_code,
                         parse_address(address), register_count, len(values))
    return header + values


def build_write_coil_command(address: str, value: bool, station_number: int = 1,
                             function_code: int = WRITE_SINGLE_COIL) -> bytes:
    """
    Build request for write single coil

    Value is 0xFF00 for ON, 0x0000 for OFF.
    """
    coil_value = COIL_ON if value else COIL_OFF
    return struct.pack('>BBHBB', station_number, function_code,
                       parse_address(address), coil_value, 0x00)


def validate_response(response: bytes) -> Result:
    """
    Check a raw response and strip its CRC trailer

    Args:
        response: Raw bytes as read from the port

    Returns:
        Result: value is the response without its last two bytes, or a
        failure for an empty response or a CRC mismatch
    """
    result = Result()
    if not response:
        logger.warning("Empty response received")
        return result.fail(EMPTY_RESPONSE_MESSAGE, EmptyResponseError(EMPTY_RESPONSE_MESSAGE),
                           record=True)

    result.response = to_hex(response)
    if not validate_crc(response):
        logger.warning(f"CRC validation failed for response: {response.hex()}")
        return result.fail(CRC_MISMATCH_MESSAGE,
                           CRCMismatchError(CRC_MISMATCH_MESSAGE, result.response),
                           record=True)

    result.value = bytes(response[:-2])
    return result
