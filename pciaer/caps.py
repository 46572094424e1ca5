from __future__ import annotations

import enum
import logging
from typing import Iterator, Optional, Tuple

from .types import ConfigSpace

log = logging.getLogger(__name__)

# =========================
# Register layout
# =========================

# fmt: off
PCI_STATUS            = 0x06
PCI_STATUS_CAP_LIST   = 0x10   # Status bit 4: capability list present
PCI_CAPABILITY_LIST   = 0x34
PCI_CAP_LIST_ID       = 0
PCI_CAP_LIST_NEXT     = 1

# Offsets inside the PCI Express capability
PCI_EXP_DEVSTA        = 0x0A

# Extended capabilities always begin at 0x100
PCIE_ECAP_OFFSET      = 0x100

# Offsets inside the AER extended capability
PCI_ERR_UNCOR_STATUS  = 0x04
PCI_ERR_UNCOR_MASK    = 0x08
PCI_ERR_UNCOR_SEVER   = 0x0C
PCI_ERR_COR_STATUS    = 0x10
PCI_ERR_COR_MASK      = 0x14
# fmt: on

# Both lists are chains of pointers read from the device; a corrupted or
# emulated config space can make them loop.
MAX_CAP_WALK = 256


class PciCapID(enum.IntEnum):
    NULL     =  0x00
    PM       =  0x01
    MSI      =  0x05
    PCIX     =  0x07
    VNDR     =  0x09
    SSVID    =  0x0D
    EXP      =  0x10
    MSIX     =  0x11
    SATA     =  0x12
    AF       =  0x13
    TERM     =  0xFF  # not a real ID: what an absent/broken device reads back


class PciExtCapID(enum.IntEnum):
    NULL     =  0x0000
    AER      =  0x0001
    VC       =  0x0002
    DSN      =  0x0003
    VNDR     =  0x000B
    ACS      =  0x000D
    ARI      =  0x000E
    ATS      =  0x000F
    SRIOV    =  0x0010
    LTR      =  0x0018
    SECPCI   =  0x0019
    DPC      =  0x001D
    L1PM     =  0x001E
    PTM      =  0x001F
    DVSEC    =  0x0023
    PL16GT   =  0x0026


def ext_cap_id(header: int) -> int:
    return header & 0xFFFF


def ext_cap_version(header: int) -> int:
    return (header >> 16) & 0xF


def ext_cap_next(header: int) -> int:
    # Bottom two bits are reserved and must be masked off
    return (header >> 20) & 0xFFC


# =========================
# Walkers
# =========================


def has_capability_list(cfg: ConfigSpace) -> bool:
    return bool(cfg.read16(PCI_STATUS) & PCI_STATUS_CAP_LIST)


def iter_capabilities(cfg: ConfigSpace) -> Iterator[Tuple[int, int]]:
    """Yield ``(offset, cap_id)`` for the standard capability list."""
    pos = cfg.read8(PCI_CAPABILITY_LIST) & ~3
    for _ in range(MAX_CAP_WALK):
        if not pos:
            return
        cap_id = cfg.read8(pos + PCI_CAP_LIST_ID)
        if cap_id == PciCapID.TERM:
            log.debug("%s: capability list ends in 0xff at 0x%02x", cfg.name, pos)
            return
        yield pos, cap_id
        pos = cfg.read8(pos + PCI_CAP_LIST_NEXT) & ~3
    log.warning(
        "%s: capability list longer than %d entries, giving up", cfg.name, MAX_CAP_WALK
    )


def iter_ext_capabilities(cfg: ConfigSpace) -> Iterator[Tuple[int, int]]:
    """
    Yield ``(offset, ext_cap_id)`` for the extended capability list.

    A header with both ID and next pointer zero means there is no list at all
    (conventional device, or a truncated/virtualized config space). Every
    next pointer must lie above 0x100; anything else ends the walk.
    """
    pos = PCIE_ECAP_OFFSET
    header = cfg.read32(pos)
    if not ext_cap_id(header) and not ext_cap_next(header):
        return
    for _ in range(MAX_CAP_WALK):
        yield pos, ext_cap_id(header)
        nxt = ext_cap_next(header)
        if nxt <= PCIE_ECAP_OFFSET:
            return
        pos = nxt
        header = cfg.read32(pos)
    log.warning(
        "%s: extended capability list longer than %d entries, giving up",
        cfg.name,
        MAX_CAP_WALK,
    )


def find_express_capability(cfg: ConfigSpace) -> Optional[int]:
    """Offset of the PCI Express capability, or None."""
    for pos, cap_id in iter_capabilities(cfg):
        if cap_id == PciCapID.EXP:
            return pos
    log.debug("%s: Cannot find CAP EXP", cfg.name)
    return None


def find_aer_capability(cfg: ConfigSpace) -> Optional[int]:
    """Offset of the Advanced Error Reporting extended capability, or None."""
    for pos, ext_id in iter_ext_capabilities(cfg):
        if ext_id == PciExtCapID.AER:
            return pos
    return None
