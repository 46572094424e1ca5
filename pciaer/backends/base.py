from __future__ import annotations

import abc
import logging
import os
import struct
from pathlib import Path
from typing import List

from ..exceptions import DeviceOpenError, RegisterReadError
from ..sysfs import PcieDevice

log = logging.getLogger(__name__)


class RegisterAccess:
    """Sized little-endian reads on top of a strict ``read(size, pos)``.

    The sized helpers return 0 when the underlying read fails; the failure has
    already been logged by ``read``.
    """

    name: str = "<unknown>"

    def read(self, size: int, pos: int) -> bytes:  # pragma: no cover - abstract
        raise NotImplementedError

    def _read_fmt(self, fmt: str, size: int, pos: int) -> int:
        try:
            return struct.unpack_from(fmt, self.read(size, pos))[0]
        except RegisterReadError:
            return 0

    def read8(self, pos: int) -> int:
        return self._read_fmt("<B", 1, pos)

    def read16(self, pos: int) -> int:
        return self._read_fmt("<H", 2, pos)

    def read32(self, pos: int) -> int:
        return self._read_fmt("<I", 4, pos)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class BufferConfigSpace(RegisterAccess):
    """Configuration space held in memory (a snapshot, a dump, a test fixture)."""

    def __init__(self, data: bytes, name: str = "<buffer>"):
        self.data = bytes(data)
        self.name = name

    def read(self, size: int, pos: int) -> bytes:
        chunk = self.data[pos : pos + size] if pos >= 0 else b""
        if len(chunk) != size:
            log.error("%s Read only %d bytes, should be %d", self.name, len(chunk), size)
            raise RegisterReadError(f"{self.name}: short read at pos {pos}")
        return chunk


class ConfigFile(RegisterAccess):
    """A device's config space exposed as a file (sysfs ``config`` or procfs)."""

    def __init__(self, path: Path, name: str):
        self.path = Path(path)
        self.name = name
        try:
            # Read-only: this monitor never writes to hardware.
            self.fd = os.open(str(self.path), os.O_RDONLY)
        except OSError as e:
            log.error("Failed to open file %s: %s", self.path, e.strerror)
            raise DeviceOpenError(f"Failed to open file {self.path}") from e

    def read(self, size: int, pos: int) -> bytes:
        try:
            data = os.pread(self.fd, size, pos)
        except OSError as e:
            log.error("Failed to read %s at pos %d: %s", self.name, pos, e.strerror)
            raise RegisterReadError(f"{self.name}: read failed at pos {pos}") from e
        if len(data) != size:
            log.error("%s Read only %d bytes, should be %d", self.name, len(data), size)
            raise RegisterReadError(f"{self.name}: short read at pos {pos}")
        return data

    def close(self) -> None:
        if self.fd == -1:
            return
        try:
            os.close(self.fd)
        except OSError as e:
            log.error("Failed to close %s, fd=%d: %s", self.name, self.fd, e.strerror)
        self.fd = -1


class AccessBackend(abc.ABC):
    """One way of listing devices and reaching their configuration space."""

    kind: str = ""
    default_dir: str = ""

    def __init__(self, access_dir: str = ""):
        self.access_dir = Path(access_dir or self.default_dir)

    @abc.abstractmethod
    def list_devices(self) -> List[PcieDevice]:
        """Enumerate devices; raises EnumerationError if the listing is unreadable."""

    @abc.abstractmethod
    def config_path(self, dev: PcieDevice) -> Path: ...

    def open(self, dev: PcieDevice) -> ConfigFile:
        return ConfigFile(self.config_path(dev), str(dev.bdf))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.access_dir)!r})"
