# tests/test_cli.py
from __future__ import annotations

import json

from pciaer.cli_monitor import ProgramArgs, build_config, run
from pciaer.errors import AERUncorrectableError as UE

from conftest import pcie_config, write_sysfs_device


def test_once_json(fake_sysfs, capfd, monkeypatch):
    monkeypatch.delenv("PCIAER_SOURCE", raising=False)
    write_sysfs_device(
        fake_sysfs / "devices",
        "0000:00:03.0",
        pcie_config(uncor_status=UE.POISON_TLP, uncor_sever=UE.POISON_TLP),
    )
    rc = run(ProgramArgs(source="sysfs", access_dir=str(fake_sysfs), once=True, json=True))
    assert rc == 0

    out = capfd.readouterr().out
    (event,) = [json.loads(line) for line in out.splitlines()]
    assert event["plugin"] == "pcie_errors"
    assert event["plugin_instance"] == "0000:00:03.0"
    assert event["type"] == "pcie_error"
    assert event["type_instance"] == "fatal"
    assert event["severity"] == "failure"
    assert event["message"] == "Uncorrectable(fatal) Error set: Poisoned TLP"


def test_config_file_and_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("PCIAER_LOG_FILE", "/env/kern.log")
    p = tmp_path / "c.yaml"
    p.write_text("pcie_errors:\n  source: proc\n  log_file: /etc/kern.log\n", encoding="utf-8")
    cfg = build_config(
        ProgramArgs(config_path=str(p), source="sysfs", read_log=True, report_masked=True)
    )
    assert cfg.source == "sysfs"
    assert cfg.log_file == "/env/kern.log"
    assert cfg.read_log and cfg.report_masked
    assert not cfg.persistent_notifications


def test_flags_can_switch_config_off(tmp_path, monkeypatch):
    monkeypatch.delenv("PCIAER_SOURCE", raising=False)
    p = tmp_path / "c.yaml"
    p.write_text(
        "pcie_errors:\n"
        "  read_log: true\n"
        "  persistent_notifications: true\n"
        "  report_masked: true\n",
        encoding="utf-8",
    )
    cfg = build_config(ProgramArgs(config_path=str(p), read_log=False, persistent=False))
    assert not cfg.read_log
    assert not cfg.persistent_notifications
    # not given on the command line: the file wins
    assert cfg.report_masked


def test_bad_config_file(tmp_path):
    p = tmp_path / "c.yaml"
    p.write_text("pcie_errors:\n  nonsense: 1\n", encoding="utf-8")
    assert run(ProgramArgs(config_path=str(p), once=True)) == 1


def test_init_failure(tmp_path):
    (tmp_path / "devices").mkdir()
    assert run(ProgramArgs(source="sysfs", access_dir=str(tmp_path), once=True)) == 1


def test_failed_cycle_exit_code(tmp_path, monkeypatch):
    monkeypatch.delenv("PCIAER_SOURCE", raising=False)
    monkeypatch.delenv("PCIAER_ACCESS_DIR", raising=False)
    assert run(
        ProgramArgs(source="none", read_log=True, log_file=str(tmp_path / "gone"), once=True)
    ) == 1
