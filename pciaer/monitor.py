"""
Process-scoped monitor state: init, one read cycle at a time, shutdown.

Scheduling is left to the caller; ``read()`` runs one complete cycle and
returns. Nothing here starts threads or timers.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .backends.base import AccessBackend
from .backends.discovery import open_backend
from .config import PcieConfig
from .exceptions import ConfigError, EnumerationError, ParserInitError
from .logparse import DEFAULT_PARSER, MessageParser
from .notify import NotificationSink
from .registry import DeviceRegistry
from .tracker import ErrorTracker

log = logging.getLogger(__name__)


class Monitor:
    def __init__(self, config: PcieConfig, sink: NotificationSink):
        self.config = config
        self.sink = sink
        self.tracker = ErrorTracker(
            sink,
            persistent=config.persistent_notifications,
            report_masked=config.report_masked,
        )
        self.backend: Optional[AccessBackend] = None
        self.registry: Optional[DeviceRegistry] = None
        self.parsers: List[MessageParser] = []
        self.first_read = config.first_full_read

    def init(self) -> None:
        """Raises ConfigError, EnumerationError or ParserInitError; no retries."""
        try:
            self.config.validate()
        except ConfigError:
            log.error("Error in configuration, failed to init plugin.")
            raise

        if self.config.read_devices:
            self.backend = open_backend(self.config.source, self.config.access_dir)
            assert self.backend is not None
            self.registry = DeviceRegistry(self.backend)
            try:
                self.registry.load()
            except EnumerationError:
                self.shutdown()
                raise
            log.info(
                "Monitoring %d PCIe device(s) via %s", len(self.registry), self.backend
            )

        if not self.config.read_log:
            return

        defs = list(self.config.msg_patterns)
        if not defs:
            log.info("Using default message parser")
            defs = [DEFAULT_PARSER]

        for defn in defs:
            try:
                self.parsers.append(MessageParser(defn, self.config.log_file))
            except ParserInitError as e:
                log.error("Failed to initialize %s parser: %s", defn.name, e)
                self.shutdown()
                raise

    def read(self) -> bool:
        """One poll cycle. Returns False if any part of it failed."""
        if self.registry is not None and self.backend is not None:
            if not self.tracker.process_devices(self.registry, self.backend):
                log.error("Failed to read devices state")
                return False

        if not self.config.read_log:
            return True

        ok = True
        for parser in self.parsers:
            if not parser.read(self.sink, self.first_read):
                log.error(
                    "Failed to parse %s messages from %s",
                    parser.name,
                    self.config.log_file,
                )
                ok = False
                break

        self.first_read = False
        return ok

    def shutdown(self) -> None:
        if self.registry is not None:
            self.registry.clear()
        self.registry = None
        self.parsers = []

    def __enter__(self) -> "Monitor":
        self.init()
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
