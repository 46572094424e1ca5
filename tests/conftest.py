# tests/conftest.py
from __future__ import annotations
import struct
from pathlib import Path
from typing import Sequence, Tuple
import pytest

# Where the fake devices below keep their capabilities
PM_OFF = 0x40
EXP_OFF = 0x60
MSI_OFF = 0x80
DSN_OFF = 0x100
AER_OFF = 0x140

CAP_ID_PM = 0x01
CAP_ID_MSI = 0x05
CAP_ID_EXP = 0x10
EXT_ID_AER = 0x0001
EXT_ID_DSN = 0x0003


class ConfigSpaceBuilder:
    """Lay out a config space image byte by byte."""

    def __init__(self, size: int = 4096):
        self.buf = bytearray(size)

    def u8(self, off: int, value: int) -> "ConfigSpaceBuilder":
        self.buf[off] = value & 0xFF
        return self

    def u16(self, off: int, value: int) -> "ConfigSpaceBuilder":
        struct.pack_into("<H", self.buf, off, value)
        return self

    def u32(self, off: int, value: int) -> "ConfigSpaceBuilder":
        struct.pack_into("<I", self.buf, off, value)
        return self

    def caps(self, chain: Sequence[Tuple[int, int]]) -> "ConfigSpaceBuilder":
        """chain: [(offset, cap_id), ...] linked in the given order."""
        self.u16(0x06, 0x0010)  # Status: capability list present
        self.u8(0x34, chain[0][0] if chain else 0)
        for i, (off, cap_id) in enumerate(chain):
            nxt = chain[i + 1][0] if i + 1 < len(chain) else 0
            self.u8(off, cap_id).u8(off + 1, nxt)
        return self

    def ext_caps(self, chain: Sequence[Tuple[int, int]]) -> "ConfigSpaceBuilder":
        for i, (off, ext_id) in enumerate(chain):
            nxt = chain[i + 1][0] if i + 1 < len(chain) else 0
            self.u32(off, ext_id | (1 << 16) | (nxt << 20))
        return self

    def build(self) -> bytes:
        return bytes(self.buf)


def pcie_config(
    *,
    aer: bool = True,
    devsta: int = 0,
    uncor_status: int = 0,
    uncor_mask: int = 0,
    uncor_sever: int = 0,
    cor_status: int = 0,
    cor_mask: int = 0,
) -> bytes:
    b = ConfigSpaceBuilder()
    b.u16(0x00, 0x8086).u16(0x02, 0x2030)
    b.caps([(PM_OFF, CAP_ID_PM), (EXP_OFF, CAP_ID_EXP), (MSI_OFF, CAP_ID_MSI)])
    b.u16(EXP_OFF + 0x0A, devsta)
    if aer:
        b.ext_caps([(DSN_OFF, EXT_ID_DSN), (AER_OFF, EXT_ID_AER)])
        b.u32(AER_OFF + 0x04, uncor_status)
        b.u32(AER_OFF + 0x08, uncor_mask)
        b.u32(AER_OFF + 0x0C, uncor_sever)
        b.u32(AER_OFF + 0x10, cor_status)
        b.u32(AER_OFF + 0x14, cor_mask)
    else:
        b.ext_caps([(DSN_OFF, EXT_ID_DSN)])
    return b.build()


def legacy_config() -> bytes:
    """Conventional PCI function: 256 bytes, no capability list."""
    b = ConfigSpaceBuilder(256)
    b.u16(0x00, 0x8086).u16(0x02, 0x7000)
    return b.build()


def write_sysfs_device(devdir: Path, bdf: str, data: bytes) -> Path:
    d = devdir / bdf
    d.mkdir(parents=True, exist_ok=True)
    cfg = d / "config"
    cfg.write_bytes(data)
    return cfg


@pytest.fixture
def fake_sysfs(tmp_path: Path) -> Path:
    """
    A fake /sys/bus/pci: devices/<bdf>/config for
      0000:00:03.0  PCIe root port with AER
      0000:02:00.0  PCIe endpoint without AER
      0000:00:1f.0  conventional PCI device (pruned)
      0000:05:00.0  directory without a config file (pruned)
    plus a non-BDF entry that enumeration has to skip.
    """
    root = tmp_path / "sysfs"
    real = tmp_path / "real"
    devdir = root / "devices"
    devdir.mkdir(parents=True)

    # Like the real thing, device entries are symlinks into the device tree
    port = write_sysfs_device(real, "0000:00:03.0", pcie_config()).parent
    (devdir / "0000:00:03.0").symlink_to(port, target_is_directory=True)

    write_sysfs_device(devdir, "0000:02:00.0", pcie_config(aer=False))
    write_sysfs_device(devdir, "0000:00:1f.0", legacy_config())
    (devdir / "0000:05:00.0").mkdir()
    (devdir / "dummy").mkdir()
    return root


@pytest.fixture
def fake_proc(tmp_path: Path) -> Path:
    """A fake /proc/bus/pci: the devices table plus BB/DD.F files."""
    root = tmp_path / "proc"
    root.mkdir()
    (root / "devices").write_text(
        "0018\t80862030\t1a\t0\n"
        "0300\t10de1db6\t2b\tf9000000\n"
        "zz not a slot\n"
        "00f8\t80867000\t0\t0\n",
        encoding="ascii",
    )
    for bus, devfn, data in (
        ("00", "03.0", pcie_config()),
        ("03", "00.0", pcie_config(aer=False)),
        ("00", "1f.0", legacy_config()),
    ):
        (root / bus).mkdir(exist_ok=True)
        (root / bus / devfn).write_bytes(data)
    return root


AER_LOG_LINE = (
    "Oct 18 10:00:01 host kernel: [ 12.345] pcieport 0000:00:03.0: AER: "
    "0000:00:03.0: PCIe Bus Error: severity=Corrected, type=Physical Layer, id=0008\n"
)


@pytest.fixture
def kern_log(tmp_path: Path) -> Path:
    p = tmp_path / "kern.log"
    p.write_text("Oct 18 10:00:00 host kernel: Linux version 6.1.0\n", encoding="utf-8")
    return p


def append_line(p: Path, line: str) -> None:
    with p.open("a", encoding="utf-8") as f:
        f.write(line)
