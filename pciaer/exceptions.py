"""
Exceptions raised by the PCIe AER monitor.

Configuration and enumeration errors are fatal at startup. Per-device and
log-source errors are caught by the poll cycle and turned into failure
notifications instead of stopping the monitor.
"""

from __future__ import annotations

from typing import Optional


class PcieErrorsError(Exception):
    """Base exception for all monitor errors."""


class ConfigError(PcieErrorsError):
    """Raised when the configuration is invalid or cannot be loaded."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.key and self.key not in base_msg:
            return f"{base_msg} (option {self.key!r})"
        return base_msg


class EnumerationError(PcieErrorsError):
    """Raised when the device list cannot be read or holds no PCIe devices."""


class DeviceOpenError(PcieErrorsError):
    """Raised when a device's configuration space cannot be opened."""


class RegisterReadError(PcieErrorsError, OSError):
    """Raised on a failed or short configuration-space read."""


class LogReadError(PcieErrorsError):
    """Raised when the log file being matched cannot be read."""


class ParserInitError(PcieErrorsError):
    """Raised when a message parser cannot be built from its patterns."""
