"""
modrtu.config - Function codes and environment-driven defaults
"""

import os

# Modbus function codes
READ_COILS = 0x01
READ_DISCRETE_INPUTS = 0x02
READ_HOLDING_REGISTERS = 0x03
WRITE_SINGLE_COIL = 0x05
WRITE_MULTIPLE_REGISTERS = 0x10

# Coil value sentinels (high byte of the value field)
COIL_ON = 0xFF
COIL_OFF = 0x00

# Response wait steps in seconds, checked in order while nothing is buffered
RESPONSE_WAIT_STEPS = (0.02, 0.04, 0.08)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def get_default_timeout():
    """
    Read timeout for the serial port.

    Diagnostic mode (MODBUS_DEBUG) waits without bound, otherwise
    MODBUS_TIMEOUT seconds (default 1.0).
    """
    if _env_bool('MODBUS_DEBUG'):
        return None
    return _env_float('MODBUS_TIMEOUT', 1.0)


def get_serial_settings() -> dict:
    """Serial port settings resolved from the environment."""
    return {
        'port': os.environ.get('MODBUS_PORT', '/dev/ttyACM0'),
        'baudrate': _env_int('MODBUS_BAUDRATE', 9600),
        'bytesize': _env_int('MODBUS_BYTESIZE', 8),
        'stopbits': _env_float('MODBUS_STOPBITS', 1),
        'parity': os.environ.get('MODBUS_PARITY', 'N'),
        'timeout': get_default_timeout(),
    }


DEFAULT_STATION = _env_int('MODBUS_STATION', 1)
DEFAULT_API_PORT = _env_int('MODRTU_API_PORT', 5000)
