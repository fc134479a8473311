"""Exceptions for modrtu: malformed addresses and rejected responses."""


class ModbusRTUError(Exception):
    """Base exception for modrtu."""

    pass


class InvalidAddressError(ModbusRTUError, ValueError):
    """Raised when register address text is not an unsigned 16-bit decimal."""

    def __init__(self, address, message: str = None) -> None:
        self.address = address
        super().__init__(message or f"Invalid register address: {address!r}")


class ResponseError(ModbusRTUError):
    """Raised when a device response is rejected."""

    def __init__(self, message: str, response: str = None) -> None:
        self.response = response
        super().__init__(message)


class EmptyResponseError(ResponseError):
    """No bytes came back from the device."""

    pass


class CRCMismatchError(ResponseError):
    """The response CRC16 trailer did not match its contents."""

    pass
