from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ConfigSpace(Protocol):
    """Read access to one device's PCI configuration space.

    ``read`` is strict and raises ``RegisterReadError`` on I/O errors and short
    reads. The sized helpers swallow that error and return 0, so callers must
    treat an all-zero register with some suspicion.
    """

    name: str

    def read(self, size: int, pos: int) -> bytes: ...

    def read8(self, pos: int) -> int: ...

    def read16(self, pos: int) -> int: ...

    def read32(self, pos: int) -> int: ...

    def close(self) -> None: ...
