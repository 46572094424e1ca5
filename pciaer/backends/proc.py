from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..exceptions import EnumerationError
from ..sysfs import PciAddress, PcieDevice
from .base import AccessBackend

log = logging.getLogger(__name__)

PCIE_DEFAULT_PROCDIR = "/proc/bus/pci"


def parse_devices_table(text: str, file_name: str = "devices") -> List[PcieDevice]:
    """
    Parse /proc/bus/pci/devices. Only the first column matters: bus and devfn
    packed into one hex value (bus = high byte, device = bits 3-7, function =
    bits 0-2). There is no domain number here, so domain is always 0.
    """
    devices: List[PcieDevice] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        tok = line.split(None, 1)
        try:
            slot = int(tok[0], 16)
        except (IndexError, ValueError):
            log.warning("Failed to read line %d from %s", lineno, file_name)
            continue
        bdf = PciAddress.from_slot(slot)
        devices.append(PcieDevice(bdf=bdf))
        log.debug("pci device added to list: %s", bdf)
    return devices


class ProcBackend(AccessBackend):
    """``<dir>/devices`` table plus ``<dir>/BB/DD.F`` per device."""

    kind = "proc"
    default_dir = PCIE_DEFAULT_PROCDIR

    def list_devices(self) -> List[PcieDevice]:
        file_name = self.access_dir / "devices"
        try:
            text = file_name.read_text(encoding="ascii", errors="replace")
        except OSError as e:
            log.error(
                "Cannot open file %s to get devices list: %s", file_name, e.strerror
            )
            raise EnumerationError(f"Cannot open file {file_name}") from e
        return parse_devices_table(text, str(file_name))

    def config_path(self, dev: PcieDevice) -> Path:
        b = dev.bdf
        return self.access_dir / f"{b.bus:02x}" / f"{b.device:02x}.{b.function}"
