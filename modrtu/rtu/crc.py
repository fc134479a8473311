"""
Modbus RTU CRC16 helpers
"""

import struct


def calculate_crc(data: bytes) -> int:
    """
    Calculate Modbus RTU CRC16

    Args:
        data: Data bytes for CRC calculation

    Returns:
        int: CRC16 value
    """
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc >>= 1
                crc ^= 0xA001
            else:
                crc >>= 1
    return crc


def append_crc(frame: bytes) -> bytes:
    """Return frame with its CRC16 appended, low byte first."""
    return bytes(frame) + struct.pack('<H', calculate_crc(frame))


def validate_crc(frame: bytes) -> bool:
    """
    Check the 2-byte CRC trailer of a complete frame

    Args:
        frame: Frame including its CRC trailer

    Returns:
        bool: True if the trailer matches the frame contents
    """
    if len(frame) < 2:
        return False
    received_crc = struct.unpack('<H', frame[-2:])[0]
    return received_crc == calculate_crc(frame[:-2])
