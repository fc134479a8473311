"""
Modbus RTU value codec
Converts between wire-order bytes and typed values
"""

import struct
from enum import Enum
from typing import Union

Number = Union[int, float, bool]


class DataType(str, Enum):
    """Typed values carried in holding registers and coils."""

    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"

    @property
    def fmt(self) -> str:
        return _FORMATS[self]

    @property
    def size(self) -> int:
        """Width of the value in bytes."""
        return struct.calcsize('<' + self.fmt)

    @property
    def register_count(self) -> int:
        """Registers to request before decoding a value of this type."""
        if self is DataType.BOOL:
            return 1
        return self.size // 2


_FORMATS = {
    DataType.INT16: 'h',
    DataType.UINT16: 'H',
    DataType.INT32: 'i',
    DataType.UINT32: 'I',
    DataType.INT64: 'q',
    DataType.UINT64: 'Q',
    DataType.FLOAT: 'f',
    DataType.DOUBLE: 'd',
    DataType.BOOL: '?',
}


def encode_value(value: Number, data_type: DataType) -> bytes:
    """
    Encode a value as register payload bytes

    The little-endian representation of the value is reversed, so the
    payload is big-endian on every host.

    Args:
        value: Value to encode
        data_type: Target type

    Returns:
        bytes: Payload for a write-multiple-registers command

    Raises:
        struct.error: If the value does not fit the type
    """
    data_type = DataType(data_type)
    if data_type is DataType.BOOL:
        raise ValueError("bool values are written as coils, not registers")
    return struct.pack('<' + data_type.fmt, value)[::-1]


def decode_value(payload: bytes, data_type: DataType) -> Number:
    """
    Decode the value of a raw read into a typed value

    The payload is the byte-reversed frame returned by read(), so its
    leading bytes are the little-endian representation of the type and
    the value comes from the tail of the frame on the wire.

    Args:
        payload: Reversed response bytes as returned by read()
        data_type: Target type

    Returns:
        Decoded value

    Raises:
        struct.error: If the payload is shorter than the type
        IndexError: If a bool is decoded from an empty payload
    """
    data_type = DataType(data_type)
    payload = bytes(payload)
    if data_type is DataType.BOOL:
        return payload[0] != 0
    return struct.unpack_from('<' + data_type.fmt, payload, 0)[0]
