"""
pciaer — PCI Express AER error monitor (config-space registers + kernel log).

Public API:
    - Lifecycle:
        Monitor, PcieConfig, load_config
    - Notifications:
        Notification, Severity, LoggingSink, JsonLinesSink, CollectingSink
    - Devices and capabilities:
        PciAddress, PcieDevice, DeviceRegistry,
        find_express_capability, find_aer_capability
    - Edge detection / log extraction:
        ErrorTracker, MessageParser, MessagePattern
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover
    __version__ = version("pciaer")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0.dev0"

# Public API re-exports
from .caps import find_aer_capability, find_express_capability
from .config import PcieConfig, load_config
from .logmatch import MessagePattern
from .logparse import MessageParser, MsgParserDef
from .monitor import Monitor
from .notify import (
    CollectingSink,
    JsonLinesSink,
    LoggingSink,
    Notification,
    Severity,
)
from .registry import DeviceRegistry
from .sysfs import PciAddress, PcieDevice
from .tracker import ErrorTracker

__all__ = [
    "__version__",
    # Lifecycle
    "Monitor",
    "PcieConfig",
    "load_config",
    # Notifications
    "Notification",
    "Severity",
    "LoggingSink",
    "JsonLinesSink",
    "CollectingSink",
    # Devices
    "PciAddress",
    "PcieDevice",
    "DeviceRegistry",
    "find_express_capability",
    "find_aer_capability",
    # Tracking / parsing
    "ErrorTracker",
    "MessageParser",
    "MessagePattern",
    "MsgParserDef",
]
