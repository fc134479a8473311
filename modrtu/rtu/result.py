"""
Operation result returned by every public client call
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..errors import ModbusRTUError


@dataclass
class Result:
    """
    Outcome of one Modbus operation.

    ``request`` and ``response`` hold hex renderings of the frames for
    diagnostics. ``exception`` keeps the error that failed the operation,
    when there was one.
    """

    is_succeed: bool = True
    value: Any = None
    err: Optional[str] = None
    err_list: List[str] = field(default_factory=list)
    request: Optional[str] = None
    response: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    def fail(self, message: str, exception: BaseException = None, record: bool = False) -> 'Result':
        """Mark the result failed; ``record`` also appends to err_list."""
        self.is_succeed = False
        self.value = None
        self.err = message
        if exception is not None:
            self.exception = exception
        if record:
            self.err_list.append(message)
        return self

    def derive(self, value: Any = None) -> 'Result':
        """New result carrying this one's status and diagnostics."""
        return Result(
            is_succeed=self.is_succeed,
            value=value,
            err=self.err,
            err_list=list(self.err_list),
            request=self.request,
            response=self.response,
            exception=self.exception,
        )

    def unwrap(self) -> Any:
        """Return the value, raising the recorded error if the operation failed."""
        if self.is_succeed:
            return self.value
        if isinstance(self.exception, ModbusRTUError):
            raise self.exception
        raise ModbusRTUError(self.err or "Modbus operation failed") from self.exception

    def to_dict(self) -> dict:
        value = self.value
        if isinstance(value, (bytes, bytearray)):
            value = ' '.join(f'{b:02X}' for b in value)
        return {
            'is_succeed': self.is_succeed,
            'value': value,
            'err': self.err,
            'err_list': list(self.err_list),
            'request': self.request,
            'response': self.response,
        }

    def __bool__(self) -> bool:
        return self.is_succeed
