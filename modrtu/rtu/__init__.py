"""
Modbus RTU Package
Frame building, CRC validation, value codec and the serial client
"""

# Core classes
from .client import ConnectionState, ModbusRTUClient
from .result import Result
from .transport import SerialTransport

# Protocol functions
from .protocol import (
    build_read_command, build_write_command, build_write_coil_command,
    parse_address, to_hex, validate_response
)

# Codec
from .codec import DataType, decode_value, encode_value

# CRC functions
from .crc import append_crc, calculate_crc, validate_crc

__all__ = [
    'ConnectionState',
    'ModbusRTUClient',
    'Result',
    'SerialTransport',
    'build_read_command',
    'build_write_command',
    'build_write_coil_command',
    'parse_address',
    'to_hex',
    'validate_response',
    'DataType',
    'decode_value',
    'encode_value',
    'append_crc',
    'calculate_crc',
    'validate_crc',
]
