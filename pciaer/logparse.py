"""
Turn AER messages matched in the kernel log into notifications.

The register path and this path are independent: an error seen in both the
AER registers and the log is reported once from each.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Tuple

from .exceptions import LogReadError
from .logmatch import LogMatcher, MessageItem, MessagePattern
from .notify import (
    PCIE_ERROR,
    PCIE_SEV_CE,
    PCIE_SEV_FATAL,
    PCIE_SEV_NOFATAL,
    Notification,
    NotificationSink,
    Severity,
)

log = logging.getLogger(__name__)

PCIE_LOG_PORT = "root port"
PCIE_LOG_SEVERITY = "severity"
PCIE_LOG_DEV = "device"
PCIE_LOG_TYPE = "error type"
PCIE_LOG_ID = "id"

# Default patterns for AER errors in syslog
DEFAULT_PATTERNS: Tuple[MessagePattern, ...] = (
    MessagePattern(PCIE_LOG_PORT, r"pcieport (.*): AER:", is_mandatory=True),
    MessagePattern(
        PCIE_LOG_DEV, r" ([0-9a-fA-F:\.]*): PCIe Bus Error", is_mandatory=True
    ),
    MessagePattern(PCIE_LOG_SEVERITY, r"severity=([^,]*)", is_mandatory=True),
    MessagePattern(PCIE_LOG_TYPE, r"type=(.*),", is_mandatory=False),
    MessagePattern(PCIE_LOG_ID, r", id=(.*)", is_mandatory=True),
)

# "non-fatal" contains "fatal", so it has to be tested first
_NON_FATAL_RE = re.compile(r"non-fatal", re.IGNORECASE)
_FATAL_RE = re.compile(r"fatal", re.IGNORECASE)


@dataclass(frozen=True)
class MsgParserDef:
    name: str
    patterns: Tuple[MessagePattern, ...]


DEFAULT_PARSER = MsgParserDef("default", DEFAULT_PATTERNS)


def classify_severity(value: str) -> Tuple[Severity, str]:
    if _NON_FATAL_RE.search(value):
        return Severity.WARNING, PCIE_SEV_NOFATAL
    if _FATAL_RE.search(value):
        return Severity.FAILURE, PCIE_SEV_FATAL
    return Severity.WARNING, PCIE_SEV_CE


def parse_message(items: Iterable[MessageItem]) -> Notification:
    severity = Severity.WARNING
    type_instance = ""
    plugin_instance = ""
    meta = {}

    for i, item in enumerate(items):
        if not item.value:
            continue
        log.debug("[%02d] %s:%s", i, item.name, item.value)

        if item.name.startswith(PCIE_LOG_SEVERITY):
            severity, type_instance = classify_severity(item.value)
        elif item.name.startswith(PCIE_LOG_DEV):
            plugin_instance = item.value
        else:
            meta[item.name] = item.value

    return Notification(
        severity=severity,
        message=f"AER {type_instance} error reported in log",
        plugin_instance=plugin_instance,
        type=PCIE_ERROR,
        type_instance=type_instance,
        meta=meta,
    )


class MessageParser:
    """One named set of patterns applied to the log file."""

    def __init__(self, defn: MsgParserDef, logfile: str):
        self.name = defn.name
        self.defn = defn
        self.matcher = LogMatcher(logfile, defn.patterns)

    def read(self, sink: NotificationSink, first_read: bool = False) -> bool:
        try:
            messages = self.matcher.read(first_read)
        except LogReadError:
            sink.dispatch(
                Notification(
                    severity=Severity.FAILURE, message="Failed to read from log file"
                )
            )
            return False

        log.debug("read %d messages, %s", len(messages), self.name)
        for msg in messages:
            sink.dispatch(parse_message(msg))
        return True

    def __repr__(self) -> str:
        return f"MessageParser({self.name!r}, {str(self.matcher.filename)!r})"
