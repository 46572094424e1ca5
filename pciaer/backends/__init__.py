"""
Register access backends.

``open_backend`` selects one implementation from configuration; the rest of
the package only sees ``AccessBackend`` and the ``ConfigSpace`` handles it opens.
"""

from __future__ import annotations

from .base import AccessBackend, BufferConfigSpace, ConfigFile
from .discovery import open_backend
from .proc import ProcBackend
from .sysfs import SysfsBackend

__all__ = [
    "AccessBackend",
    "BufferConfigSpace",
    "ConfigFile",
    "ProcBackend",
    "SysfsBackend",
    "open_backend",
]
