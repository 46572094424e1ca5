"""
Monitor configuration.

Values come from three layers, later ones winning: the dataclass defaults, a
YAML file, and ``PCIAER_*`` environment variables. Option names are matched
case-insensitively and with or without underscores, so both ``log_file`` and
the collectd-style ``LogFile`` are accepted.

Example::

    pcie_errors:
      source: sysfs
      report_masked: false
      persistent_notifications: false
      read_log: true
      log_file: /var/log/kern.log
      msg_pattern:
        - name: aer
          match:
            - {name: "root port", regex: "pcieport (.*): AER:"}
            - {name: "device", regex: " ([0-9a-fA-F:\\.]*): PCIe Bus Error"}
            - {name: "severity", regex: "severity=([^,]*)"}
            - {name: "id", regex: ", id=(.*)"}
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .backends.discovery import BACKENDS
from .exceptions import ConfigError
from .logmatch import MessagePattern
from .logparse import MsgParserDef

log = logging.getLogger(__name__)

DEFAULT_LOG_FILE = "/var/log/syslog"
CONFIG_SECTION = "pcie_errors"


@dataclass
class PcieConfig:
    source: str = "sysfs"
    access_dir: str = ""
    report_masked: bool = False
    persistent_notifications: bool = False
    log_file: str = DEFAULT_LOG_FILE
    read_log: bool = False
    first_full_read: bool = False
    msg_patterns: List[MsgParserDef] = field(default_factory=list)

    @property
    def read_devices(self) -> bool:
        # "sysfs" and "proc" read registers; anything else turns polling off
        return self.source.lower() in BACKENDS

    def validate(self) -> None:
        if not self.read_devices and not self.read_log:
            raise ConfigError("Plugin is not configured for any source of data.")
        names = [p.name for p in self.msg_patterns]
        if len(names) != len(set(names)):
            raise ConfigError("Message parser names must be unique", "msg_pattern")
        for p in self.msg_patterns:
            if not p.patterns:
                raise ConfigError(f"Message parser {p.name!r} has no match rules")


def _norm(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


# normalized key -> (field name, type)
_OPTIONS: Dict[str, Tuple[str, type]] = {
    "source": ("source", str),
    "accessdir": ("access_dir", str),
    "reportmasked": ("report_masked", bool),
    "persistentnotifications": ("persistent_notifications", bool),
    "logfile": ("log_file", str),
    "readlog": ("read_log", bool),
    "firstfullread": ("first_full_read", bool),
}

_MATCH_OPTIONS: Dict[str, Tuple[str, type]] = {
    "name": ("name", str),
    "regex": ("regex", str),
    "submatchidx": ("submatch_idx", int),
    "excluderegex": ("excluderegex", str),
    "ismandatory": ("is_mandatory", bool),
}


def _typed(value: Any, typ: type, key: str) -> Any:
    # bool is an int subclass; don't let `true` pass as a submatch index
    if typ is int and isinstance(value, bool):
        raise ConfigError(f"Invalid configuration parameter {key!r}", key)
    if not isinstance(value, typ):
        raise ConfigError(
            f"Invalid configuration parameter {key!r}: expected {typ.__name__}", key
        )
    return value


def _parse_match(item: Any) -> MessagePattern:
    if not isinstance(item, Mapping):
        raise ConfigError("Each match rule must be a mapping", "match")
    kwargs: Dict[str, Any] = {}
    for key, value in item.items():
        opt = _MATCH_OPTIONS.get(_norm(str(key)))
        if opt is None:
            raise ConfigError(f"Invalid configuration option {key!r}.", str(key))
        name, typ = opt
        kwargs[name] = _typed(value, typ, str(key))
    if "name" not in kwargs or "regex" not in kwargs:
        raise ConfigError("Match rules need both a name and a regex", "match")
    return MessagePattern(**kwargs)


def _parse_parser(item: Any) -> MsgParserDef:
    if not isinstance(item, Mapping):
        raise ConfigError("Each message pattern must be a mapping", "msg_pattern")
    name: Optional[str] = None
    matches: List[MessagePattern] = []
    for key, value in item.items():
        k = _norm(str(key))
        if k == "name":
            name = _typed(value, str, str(key))
        elif k in ("match", "matches"):
            if not isinstance(value, list):
                raise ConfigError("Match rules must be a list", str(key))
            matches = [_parse_match(m) for m in value]
        else:
            raise ConfigError(f"option {key!r} is not allowed here.", str(key))
    if not name:
        raise ConfigError("Message pattern needs a name", "msg_pattern")
    return MsgParserDef(name, tuple(matches))


def config_from_dict(data: Mapping[str, Any]) -> PcieConfig:
    cfg = PcieConfig()
    for key, value in data.items():
        k = _norm(str(key))
        if k in ("msgpattern", "msgpatterns"):
            if not isinstance(value, list):
                raise ConfigError("Message patterns must be a list", str(key))
            cfg.msg_patterns.extend(_parse_parser(p) for p in value)
            continue
        opt = _OPTIONS.get(k)
        if opt is None:
            raise ConfigError(f"Invalid configuration option {key!r}.", str(key))
        name, typ = opt
        setattr(cfg, name, _typed(value, typ, str(key)))
    return cfg


def load_config(path: str) -> PcieConfig:
    """Load a YAML configuration file; the ``pcie_errors`` section is optional."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {path}: {e.strerror}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse configuration {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration {path} must be a mapping")
    for key in list(data):
        if _norm(str(key)) == _norm(CONFIG_SECTION):
            data = data[key] or {}
            break
    log.debug("Loaded configuration from %s", Path(path).resolve())
    return config_from_dict(data)


def apply_env(cfg: PcieConfig, environ: Optional[Mapping[str, str]] = None) -> PcieConfig:
    env = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    if env.get("PCIAER_SOURCE"):
        overrides["source"] = env["PCIAER_SOURCE"]
    if env.get("PCIAER_ACCESS_DIR"):
        overrides["access_dir"] = env["PCIAER_ACCESS_DIR"]
    if env.get("PCIAER_LOG_FILE"):
        overrides["log_file"] = env["PCIAER_LOG_FILE"]
    return replace(cfg, **overrides) if overrides else cfg
