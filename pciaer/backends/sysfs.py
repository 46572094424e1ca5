from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..exceptions import EnumerationError
from ..sysfs import PcieDevice, SysfsEnumerator
from .base import AccessBackend

log = logging.getLogger(__name__)

PCIE_DEFAULT_SYSFSDIR = "/sys/bus/pci"


class SysfsBackend(AccessBackend):
    """``<dir>/devices/DDDD:BB:DD.F/config`` per device."""

    kind = "sysfs"
    default_dir = PCIE_DEFAULT_SYSFSDIR

    def list_devices(self) -> List[PcieDevice]:
        dir_name = self.access_dir / "devices"
        try:
            devices = SysfsEnumerator(str(dir_name)).scan()
        except OSError as e:
            log.error("Cannot open dir %s to get devices list: %s", dir_name, e.strerror)
            raise EnumerationError(f"Cannot open dir {dir_name}") from e
        return list(devices.values())

    def config_path(self, dev: PcieDevice) -> Path:
        if dev.config_path is not None:
            return dev.config_path
        return self.access_dir / "devices" / str(dev.bdf) / "config"
