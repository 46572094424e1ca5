"""
Notification model and sinks.

Both the register path and the log path produce ``Notification`` objects and
hand them to a single ``NotificationSink``; what happens afterwards (alerting,
storage, expiry) belongs to the sink.
"""

from __future__ import annotations

import enum
import json
import logging
import socket
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, TextIO


PLUGIN_NAME = "pcie_errors"

PCIE_ERROR = "pcie_error"
PCIE_SEV_CE = "correctable"
PCIE_SEV_FATAL = "fatal"
PCIE_SEV_NOFATAL = "non_fatal"


class Severity(str, enum.Enum):
    FAILURE = "failure"
    WARNING = "warning"
    OKAY = "ok"


@dataclass(frozen=True)
class Notification:
    severity: Severity
    message: str
    plugin_instance: str = ""
    type: str = ""
    type_instance: str = ""
    meta: Dict[str, str] = field(default_factory=dict)
    time: float = field(default_factory=time.time)
    host: str = field(default_factory=socket.gethostname)
    plugin: str = PLUGIN_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "host": self.host,
            "plugin": self.plugin,
            "plugin_instance": self.plugin_instance,
            "type": self.type,
            "type_instance": self.type_instance,
            "severity": self.severity.value,
            "message": self.message,
            "meta": dict(self.meta),
        }

    def __str__(self) -> str:
        subject = self.plugin_instance or self.plugin
        if self.type_instance:
            subject = f"{subject} [{self.type_instance}]"
        return f"{self.severity.value.upper()} {subject}: {self.message}"


class NotificationSink(Protocol):
    def dispatch(self, n: Notification) -> None: ...


_LEVELS = {
    Severity.FAILURE: logging.ERROR,
    Severity.WARNING: logging.WARNING,
    Severity.OKAY: logging.INFO,
}


class LoggingSink:
    """Write notifications to a logger, one line each."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(PLUGIN_NAME)

    def dispatch(self, n: Notification) -> None:
        extra = ""
        if n.meta:
            extra = " " + " ".join(f"{k}={v!r}" for k, v in n.meta.items())
        self.logger.log(_LEVELS[n.severity], "%s%s", n, extra)


class JsonLinesSink:
    """One JSON object per notification, newline-terminated."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout

    def dispatch(self, n: Notification) -> None:
        self.stream.write(json.dumps(n.to_dict(), sort_keys=True) + "\n")
        self.stream.flush()


class CollectingSink:
    """Keep notifications in memory."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def dispatch(self, n: Notification) -> None:
        self.notifications.append(n)

    def clear(self) -> None:
        self.notifications.clear()

    def __len__(self) -> int:
        return len(self.notifications)

    def __iter__(self):
        return iter(self.notifications)
