"""Error taxonomy shared by the acquisition pipeline.

Each stage of a cycle raises its own error type so the acquisition service
can decide per stage whether a failure skips the cycle, is only logged, or
stops the process.
"""

from __future__ import annotations


class MotorMonitorError(Exception):
    """Base class for all errors raised by motor_monitor."""


class TransportError(MotorMonitorError, IOError):
    """Field-bus read failed, timed out or returned a malformed response."""


class StorageError(MotorMonitorError):
    """Schema setup or sample insert failed."""


class RenderError(MotorMonitorError):
    """A chart could not be produced (invalid series or output failure)."""


class AcquisitionHealthError(MotorMonitorError):
    """Too many consecutive acquisition cycles failed."""

    def __init__(self, failures: int, last_error: BaseException) -> None:
        super().__init__(
            f"{failures} consecutive acquisition cycles failed, last error: {last_error}"
        )
        self.failures = failures
        self.last_error = last_error


__all__ = [
    "MotorMonitorError",
    "TransportError",
    "StorageError",
    "RenderError",
    "AcquisitionHealthError",
]
