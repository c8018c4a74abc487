"""Append-only NDJSON event files.

Layout under the log directory::

    events.ndjson                 every event
    functions/<NAME>.ndjson       events attributed to one function

Lines are ``json.dumps(..., sort_keys=True)``.  Appends hold an exclusive
``flock`` and reads a shared one where ``fcntl`` exists.  Reads only look
at the last ``tail_bytes`` of a file.
"""

from __future__ import annotations

import json
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from gridfn.logging.events import GridfnEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

# Canonical function names, plus the dots they may contain
_FILE_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")

DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_READ_LIMIT = 2000


@contextmanager
def _locked_fd(path: Path, flags: int, lock: int) -> Iterator[int]:
    fd = os.open(str(path), flags, 0o644)
    try:
        if fcntl is not None:
            fcntl.flock(fd, lock)
        yield fd
    finally:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class EventSink:
    """Writes and queries the NDJSON event files of one log directory."""

    def __init__(self, log_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.log_dir = Path(log_dir)
        self.fsync = fsync
        self.tail_bytes = DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes
        self.functions_dir = self.log_dir / "functions"
        self.functions_dir.mkdir(parents=True, exist_ok=True)

    @property
    def global_log(self) -> Path:
        return self.log_dir / "events.ndjson"

    def function_log(self, function_name: str) -> Path | None:
        """Path of the per-function log, or None for names unsafe as file names."""
        if not _FILE_NAME_RE.match(function_name):
            return None
        return self.functions_dir / f"{function_name}.ndjson"

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, event: GridfnEvent, *, function_name: str | None = None) -> None:
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        data = line.encode("utf-8")
        self._append(self.global_log, data)
        if function_name:
            path = self.function_log(function_name)
            if path is not None:
                self._append(path, data)

    def _append(self, path: Path, data: bytes) -> None:
        with _locked_fd(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, getattr(fcntl, "LOCK_EX", 0)) as fd:
            os.write(fd, data)
            if self.fsync:
                os.fsync(fd)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_global(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        function_name: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Events of the global log, newest first, filtered."""
        wanted = {"level": level, "event_type": event_type}
        selected = []
        for event in reversed(self._read_events(self.global_log)):
            if any(value and event.get(key) != value for key, value in wanted.items()):
                continue
            if function_name and event.get("context", {}).get("function_name") != function_name:
                continue
            selected.append(event)
            if len(selected) >= min(limit, MAX_READ_LIMIT):
                break
        return selected

    def read_function_log(self, function_name: str) -> list[dict[str, Any]]:
        """Events recorded for one function, oldest first."""
        path = self.function_log(function_name)
        return [] if path is None else self._read_events(path)

    def _read_events(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        events = []
        for line in self._tail(path).splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _tail(self, path: Path) -> str:
        """The last ``tail_bytes`` of *path*, starting at a line boundary."""
        with _locked_fd(path, os.O_RDONLY, getattr(fcntl, "LOCK_SH", 0)) as fd:
            size = os.fstat(fd).st_size
            offset = max(0, size - self.tail_bytes)
            os.lseek(fd, offset, os.SEEK_SET)
            data = os.read(fd, size - offset)
        if offset:
            # First line is probably cut
            data = data[data.find(b"\n") + 1:]
        return data.decode("utf-8", errors="replace")
