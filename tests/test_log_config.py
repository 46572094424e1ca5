# tests/test_log_config.py
from __future__ import annotations

import logging

from pciaer.log_config import setup_logging


def test_setup_logging_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    out = tmp_path / "pciaer.log"
    try:
        setup_logging(logging.DEBUG, str(out))
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        logging.getLogger("pciaer.tracker").debug("0000:00:03.0: probe")
        for h in root.handlers:
            h.flush()
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
    text = out.read_text(encoding="utf-8")
    assert "pciaer.tracker - DEBUG - 0000:00:03.0: probe" in text
