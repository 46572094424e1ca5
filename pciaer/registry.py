from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from .backends.base import AccessBackend
from .caps import find_aer_capability, find_express_capability, has_capability_list
from .exceptions import DeviceOpenError, EnumerationError
from .sysfs import PcieDevice
from .types import ConfigSpace

log = logging.getLogger(__name__)


def probe_device(dev: PcieDevice, cfg: ConfigSpace) -> None:
    """Record the PCI Express and AER capability offsets of ``dev``."""
    if has_capability_list(cfg):
        dev.cap_exp = find_express_capability(cfg)
    if dev.cap_exp is None:
        return
    dev.ecap_aer = find_aer_capability(cfg)


class DeviceRegistry:
    """
    The set of PCI Express devices that get polled.

    Membership is decided once by ``load()``: enumerate everything the backend
    lists, then drop what is not PCI Express or cannot be opened. After that
    only the per-device snapshot fields change.
    """

    def __init__(self, backend: AccessBackend):
        self.backend = backend
        self._devices: Dict[str, PcieDevice] = {}

    def enumerate(self) -> List[PcieDevice]:
        self._devices = {str(d.bdf): d for d in self.backend.list_devices()}
        return list(self._devices.values())

    def prune_non_express(self) -> None:
        for key, dev in list(self._devices.items()):
            try:
                cfg = self.backend.open(dev)
            except DeviceOpenError:
                log.error("%s: failed to open", dev.bdf)
                del self._devices[key]
                continue

            with cfg:
                probe_device(dev, cfg)

            # Every PCIe device must have the Express capability structure
            if not dev.is_express:
                log.debug("Not PCI Express device: %s", dev.bdf)
                del self._devices[key]
            elif not dev.has_aer:
                log.info("Device is not AER capable: %s", dev.bdf)

    def load(self) -> None:
        self.enumerate()
        self.prune_non_express()
        if not self._devices:
            log.error("No PCIe devices found in %s", self.backend.access_dir)
            raise EnumerationError(
                f"No PCIe devices found in {self.backend.access_dir}"
            )

    def clear(self) -> None:
        self._devices.clear()

    def get(self, bdf: str) -> Optional[PcieDevice]:
        return self._devices.get(bdf)

    def __iter__(self) -> Iterator[PcieDevice]:
        return iter(self._devices.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, bdf: object) -> bool:
        return bdf in self._devices
