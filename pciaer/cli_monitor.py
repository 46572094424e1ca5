#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import logging
import sys
import time
from dataclasses import dataclass, replace
from typing import Optional

import pciaer
from pciaer.config import PcieConfig, apply_env, load_config
from pciaer.exceptions import PcieErrorsError
from pciaer.log_config import setup_logging
from pciaer.notify import JsonLinesSink, LoggingSink, NotificationSink

log = logging.getLogger(__name__)


@dataclass
class ProgramArgs:
    config_path: Optional[str] = None
    source: Optional[str] = None
    access_dir: Optional[str] = None
    log_file: Optional[str] = None
    # None leaves the configured value alone
    read_log: Optional[bool] = None
    persistent: Optional[bool] = None
    report_masked: Optional[bool] = None
    first_full_read: Optional[bool] = None
    interval: float = 10.0
    once: bool = False
    json: bool = False
    verbose: int = 0
    log_output: Optional[str] = None


def build_config(args: ProgramArgs) -> PcieConfig:
    cfg = load_config(args.config_path) if args.config_path else PcieConfig()
    cfg = apply_env(cfg)

    overrides = {}
    if args.source:
        overrides["source"] = args.source
    if args.access_dir:
        overrides["access_dir"] = args.access_dir
    if args.log_file:
        overrides["log_file"] = args.log_file
    for name, value in (
        ("read_log", args.read_log),
        ("persistent_notifications", args.persistent),
        ("report_masked", args.report_masked),
        ("first_full_read", args.first_full_read),
    ):
        if value is not None:
            overrides[name] = value
    return replace(cfg, **overrides)


def run(args: ProgramArgs, sink: Optional[NotificationSink] = None) -> int:
    try:
        cfg = build_config(args)
    except PcieErrorsError as e:
        log.error("%s", e)
        return 1

    if sink is None:
        sink = JsonLinesSink(sys.stdout) if args.json else LoggingSink()

    monitor = pciaer.Monitor(cfg, sink)
    try:
        monitor.init()
    except PcieErrorsError as e:
        log.error("Initialization failed: %s", e)
        return 1

    try:
        if args.once:
            return 0 if monitor.read() else 1
        while True:  # pragma: no cover - needs a signal to stop
            started = time.monotonic()
            monitor.read()
            time.sleep(max(0.0, args.interval - (time.monotonic() - started)))
    except KeyboardInterrupt:  # pragma: no cover
        return 0
    finally:
        monitor.shutdown()


def main() -> None:  # pragma: no cover
    ap = argparse.ArgumentParser(
        description="Report PCI Express AER errors from config space and the kernel log"
    )
    ap.add_argument("-c", "--config", dest="config_path", default=None,
                    help="YAML configuration file")
    ap.add_argument("--source", default=None,
                    help="register access: sysfs, proc, or anything else for none")
    ap.add_argument("--access-dir", dest="access_dir", default=None,
                    help="override /sys/bus/pci or /proc/bus/pci")
    ap.add_argument("--log-file", dest="log_file", default=None,
                    help="kernel log to match AER messages in")
    ap.add_argument("--read-log", dest="read_log",
                    action=argparse.BooleanOptionalAction,
                    help="also report AER messages found in the log file")
    ap.add_argument("--persistent", action=argparse.BooleanOptionalAction,
                    help="re-report errors that are still set on every cycle")
    ap.add_argument("--report-masked", dest="report_masked",
                    action=argparse.BooleanOptionalAction,
                    help="report errors masked in the AER mask registers")
    ap.add_argument("--first-full-read", dest="first_full_read",
                    action=argparse.BooleanOptionalAction,
                    help="parse the whole log file on the first cycle")
    ap.add_argument("--interval", type=float, default=10.0,
                    help="seconds between cycles (default: 10)")
    ap.add_argument("--once", action="store_true", help="run a single cycle and exit")
    ap.add_argument("--json", action="store_true",
                    help="print notifications as JSON lines on stdout")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    ap.add_argument("--log-output", dest="log_output", default=None,
                    help="also write diagnostics to this file")
    args = ProgramArgs(**vars(ap.parse_args()))
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_output)
    sys.exit(run(args))


if __name__ == "__main__":  # pragma: no cover
    main()
