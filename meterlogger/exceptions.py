"""
Error taxonomy for the meter logger
"""
from enum import Enum
from typing import Optional


class MeterLoggerError(Exception):
    """Base class for all meter logger errors"""


class DecodeErrorKind(Enum):
    """Reasons a manufacturer payload can be rejected"""
    TOO_SHORT = "too_short"
    OUT_OF_RANGE = "out_of_range"
    MALFORMED = "malformed"


class DecodeError(MeterLoggerError, ValueError):
    """A single advertisement payload could not be decoded into a Reading"""

    def __init__(self, kind: DecodeErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.args[0]}"


class AdapterFault(MeterLoggerError):
    """The radio became unavailable while scanning (recoverable)"""


class AdapterConstructionError(MeterLoggerError):
    """The radio could not be acquired at startup (fatal)"""


class RetryBudgetExhausted(MeterLoggerError):
    """Adapter recovery failed more often than the configured budget allows"""

    def __init__(self, attempts: int, last_fault: Optional[BaseException] = None):
        message = f"Adapter did not recover after {attempts} attempt(s)"
        if last_fault is not None:
            message += f": {last_fault}"
        super().__init__(message)
        self.attempts = attempts
        self.last_fault = last_fault


class SinkError(MeterLoggerError):
    """An output sink failed to accept a record"""
