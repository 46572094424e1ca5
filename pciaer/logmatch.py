"""
Incremental regex matching over a growing log file.

A ``LogMatcher`` remembers how far into the file it has read. Each call to
``read()`` consumes the complete lines appended since the previous call and
groups them into messages: a message opens on a line matching the start
pattern and closes on a line matching the stop pattern (often the same line).
Every pattern is tried against every line of an open message; the first
capture for a pattern wins. A message whose mandatory patterns did not all
capture something is dropped.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import LogReadError, ParserInitError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessagePattern:
    name: str
    regex: str
    submatch_idx: int = 1
    excluderegex: Optional[str] = None
    is_mandatory: bool = False


@dataclass(frozen=True)
class MessageItem:
    name: str
    value: str


Message = List[MessageItem]


class _Compiled:
    __slots__ = ("pattern", "regex", "exclude")

    def __init__(self, pattern: MessagePattern):
        self.pattern = pattern
        try:
            self.regex = re.compile(pattern.regex)
            self.exclude = (
                re.compile(pattern.excluderegex) if pattern.excluderegex else None
            )
        except re.error as e:
            raise ParserInitError(
                f"bad regex for {pattern.name!r}: {e}"
            ) from e
        if not 0 <= pattern.submatch_idx <= self.regex.groups:
            raise ParserInitError(
                f"{pattern.name!r}: submatch index {pattern.submatch_idx} "
                f"but regex has {self.regex.groups} group(s)"
            )

    def matches(self, line: str) -> bool:
        return self.regex.search(line) is not None

    def capture(self, line: str) -> Optional[str]:
        m = self.regex.search(line)
        if m is None:
            return None
        if self.exclude is not None and self.exclude.search(line):
            return None
        return m.group(self.pattern.submatch_idx)


class LogMatcher:
    def __init__(
        self,
        filename: str,
        patterns: Sequence[MessagePattern],
        start_idx: int = 0,
        stop_idx: Optional[int] = None,
    ):
        if not patterns:
            raise ParserInitError("no patterns given")
        if stop_idx is None:
            stop_idx = len(patterns) - 1
        if not (0 <= start_idx < len(patterns) and 0 <= stop_idx < len(patterns)):
            raise ParserInitError(
                f"start/stop index {start_idx}/{stop_idx} out of range"
            )
        self.filename = Path(filename)
        self.patterns = [_Compiled(p) for p in patterns]
        self.start_idx = start_idx
        self.stop_idx = stop_idx
        # None until the first read decides where to start
        self.offset: Optional[int] = None
        # (st_dev, st_ino) of the file the cursor points into
        self._file_id: Optional[Tuple[int, int]] = None
        self._current: Optional[Dict[int, str]] = None

    def reset(self) -> None:
        self.offset = None
        self._file_id = None
        self._current = None

    def read(self, first_read: bool = False) -> List[Message]:
        """
        Return the messages completed since the last call.

        On the very first call the file is read from the beginning only when
        ``first_read`` is set; otherwise reading starts at the current end of
        file so only new lines are ever reported. A file that was replaced
        (different device/inode) or shrank below the cursor is read from the
        start.
        """
        try:
            with open(self.filename, "rb") as f:
                st = os.fstat(f.fileno())
                file_id = (st.st_dev, st.st_ino)

                if self.offset is None:
                    self.offset = 0 if first_read else st.st_size
                elif file_id != self._file_id:
                    log.info("%s was rotated, reading from start", self.filename)
                    self.offset = 0
                    self._current = None
                elif st.st_size < self.offset:
                    log.info("%s was truncated, reading from start", self.filename)
                    self.offset = 0
                    self._current = None
                self._file_id = file_id

                f.seek(self.offset)
                data = f.read()
        except OSError as e:
            log.error("Cannot read %s: %s", self.filename, e.strerror)
            raise LogReadError(f"Cannot read {self.filename}") from e

        # Leave a trailing partial line for the next call
        end = data.rfind(b"\n")
        if end == -1:
            return []
        self.offset += end + 1

        messages: List[Message] = []
        for line in data[: end + 1].decode("utf-8", errors="replace").splitlines():
            msg = self._feed(line)
            if msg is not None:
                messages.append(msg)
        return messages

    def _feed(self, line: str) -> Optional[Message]:
        if self.patterns[self.start_idx].matches(line):
            if self._current is not None:
                log.debug("%s: incomplete message discarded", self.filename)
            self._current = {}
        if self._current is None:
            return None

        for idx, cp in enumerate(self.patterns):
            if idx in self._current:
                continue
            value = cp.capture(line)
            if value is not None:
                self._current[idx] = value

        if not self.patterns[self.stop_idx].matches(line):
            return None

        captured, self._current = self._current, None
        missing = [
            cp.pattern.name
            for idx, cp in enumerate(self.patterns)
            if cp.pattern.is_mandatory and not captured.get(idx)
        ]
        if missing:
            log.debug(
                "%s: message dropped, missing %s", self.filename, ", ".join(missing)
            )
            return None
        return [
            MessageItem(cp.pattern.name, captured.get(idx, ""))
            for idx, cp in enumerate(self.patterns)
        ]
