from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from .base import AccessBackend
from .proc import ProcBackend
from .sysfs import SysfsBackend

log = logging.getLogger(__name__)

BACKENDS: Dict[str, Type[AccessBackend]] = {
    SysfsBackend.kind: SysfsBackend,
    ProcBackend.kind: ProcBackend,
}


def open_backend(source: str, access_dir: str = "") -> Optional[AccessBackend]:
    """
    Pick the register access backend once, at startup.

    ``source`` is matched case-insensitively. Any value other than "sysfs" or
    "proc" means device polling is disabled and None is returned. An empty
    ``access_dir`` selects the backend's default directory.
    """
    cls = BACKENDS.get(source.lower())
    if cls is None:
        log.info("Source %r does not allow reading devices", source)
        return None
    backend = cls(access_dir)
    log.debug("Using %r for register access", backend)
    return backend
