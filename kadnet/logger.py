"""Logging of peer events to standard output and to a per-peer file."""

from __future__ import annotations

import enum
import os
import sys
import threading
import time
from typing import IO, Optional, Union

from kadnet.ip import Ip
from kadnet.message import Flag, describe_flags

LOGGER_INCOMING = "[INCOMING]"
LOGGER_OUTGOING = "[OUTGOING]"
LOGGER_UPDATER = "[Update Bucket]"
LOGGER_PERFORMER = "[Performer]"
LOGGER_KBUCKET = "[KBucket]"
LOGGER_SEARCHNODE = "[SearchNode]"

PathLike = Union[str, "os.PathLike[str]"]


class LogLevel(enum.IntEnum):
    """Where log output goes."""

    NOTHING = 0
    STDOUT = 1
    FILE = 2
    EVERYWHERE = 3


def log_file_name(ip: Ip, port: int, timestamp: int) -> str:
    """The name of the log file of the peer at ``ip`` and ``port``."""
    return f"log_{ip}_{port}_{timestamp}.log"


def _format_one(item: object) -> str:
    if isinstance(item, bool):
        return "1" if item else "0"
    if isinstance(item, Flag):
        return describe_flags(item)
    if isinstance(item, float):
        return f"{item:g}"
    if isinstance(item, (bytes, bytearray)):
        raw = bytes(item)
        end = raw.find(b"\x00")
        return (raw if end < 0 else raw[:end]).decode("utf-8", errors="replace")
    return str(item)


def format_items(*args: object) -> str:
    """Join the items, each followed by a space.

    Booleans print as 1 or 0, flags by name, floats in short form, bytes as
    text up to the first NUL, and anything else through ``str``.
    """
    return "".join(_format_one(item) + " " for item in args)


class Logger:
    """Writes log lines to standard output, a file, both or nowhere.

    The file is opened on first use; when no path was given it is named by
    :func:`log_file_name` in the working directory.
    """

    def __init__(
        self,
        level: Union[LogLevel, int] = LogLevel.NOTHING,
        path: Optional[PathLike] = None,
    ) -> None:
        self.level = level
        self.path = path
        self._file: Optional[IO[str]] = None
        self._lock = threading.Lock()

    @property
    def level(self) -> LogLevel:
        """The current log level."""
        return self._level

    @level.setter
    def level(self, value: Union[LogLevel, int]) -> None:
        self._level = LogLevel(value)

    def _open(self) -> IO[str]:
        if self.path is None:
            self.path = log_file_name(Ip(), 0, int(time.time()))
        handle = open(self.path, "w", encoding="utf-8", buffering=1)
        handle.write(f"[{int(time.time())}] - --- Started peer ---\n")
        return handle

    def write_to_disk(self, text: str) -> None:
        """Append a timestamped line to the log file."""
        with self._lock:
            if self._file is None:
                self._file = self._open()
            self._file.write(f"[{int(time.time())}] - {text}\n")

    def log_file(self, *args: object) -> None:
        """Log the items to the file, if the level includes the file."""
        if self._level in (LogLevel.FILE, LogLevel.EVERYWHERE):
            self.write_to_disk(format_items(*args))

    def log_stdout(self, *args: object) -> None:
        """Log the items to standard output, if the level includes it."""
        if self._level in (LogLevel.STDOUT, LogLevel.EVERYWHERE):
            print(format_items(*args), file=sys.stdout)

    def log_both(self, *args: object) -> None:
        """Log the items everywhere the level allows."""
        if self._level is LogLevel.NOTHING:
            return
        text = format_items(*args)
        if self._level in (LogLevel.FILE, LogLevel.EVERYWHERE):
            self.write_to_disk(text)
        if self._level in (LogLevel.STDOUT, LogLevel.EVERYWHERE):
            print(text, file=sys.stdout)

    def close(self) -> None:
        """Mark the end of the log and close the file, if one was opened."""
        with self._lock:
            if self._file is None:
                return
            self._file.write(f"[{int(time.time())}] - --- Ended peer ---\n")
            self._file.close()
            self._file = None

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()