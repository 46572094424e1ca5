# pciaer/sysfs.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import logging
import re

log = logging.getLogger(__name__)

SYSFS_DEVICES_DEFAULT = "/sys/bus/pci/devices"

# "%x:%x:%x.%d" -- domain:bus:device.function
_BDF_RE = re.compile(
    r"^(?P<dom>[0-9a-fA-F]+):(?P<bus>[0-9a-fA-F]+):(?P<dev>[0-9a-fA-F]+)\.(?P<fn>[0-9]+)$"
)


@dataclass(frozen=True)
class PciAddress:
    domain: int
    bus: int
    device: int
    function: int

    def __str__(self) -> str:
        return f"{self.domain:04x}:{self.bus:02x}:{self.device:02x}.{self.function}"

    @classmethod
    def parse(cls, name: str) -> Optional["PciAddress"]:
        """Parse a ``DDDD:BB:DD.F`` name; returns None if it doesn't look like one."""
        m = _BDF_RE.match(name)
        if m is None:
            return None
        return cls(
            int(m["dom"], 16), int(m["bus"], 16), int(m["dev"], 16), int(m["fn"], 10)
        )

    @classmethod
    def from_slot(cls, slot: int, domain: int = 0) -> "PciAddress":
        """Decode the packed bus/devfn value used by /proc/bus/pci/devices."""
        return cls(domain, (slot >> 8) & 0xFF, (slot >> 3) & 0x1F, slot & 0x07)


@dataclass
class PcieDevice:
    bdf: PciAddress
    # Offsets are found once at startup; None means the capability is absent.
    cap_exp: Optional[int] = None
    ecap_aer: Optional[int] = None
    # Last observed register values, updated every poll cycle.
    device_status: int = 0
    correctable_errors: int = 0
    uncorrectable_errors: int = 0
    config_path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def is_express(self) -> bool:
        return self.cap_exp is not None

    @property
    def has_aer(self) -> bool:
        return self.ecap_aer is not None

    def __str__(self) -> str:
        return str(self.bdf)


class SysfsEnumerator:
    def __init__(self, root: str = SYSFS_DEVICES_DEFAULT):
        self.root = Path(root)

    def scan(self) -> Dict[str, PcieDevice]:
        devices: Dict[str, PcieDevice] = {}
        for d in sorted(self.root.iterdir()):
            name = d.name
            if name.startswith("."):  # omit special non-device entries
                continue
            bdf = PciAddress.parse(name)
            if bdf is None:
                log.warning("Failed to parse entry %s", name)
                continue
            devices[str(bdf)] = PcieDevice(bdf=bdf, config_path=d / "config")
            log.debug("pci device added to list: %s", bdf)
        return devices
