"""
modrtu.api - Network API over the Modbus RTU client
"""

from .rest import create_rest_app

__all__ = [
    'create_rest_app',
]
