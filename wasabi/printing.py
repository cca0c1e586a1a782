"""Console output: plain text, log lines and hex dumps."""

from __future__ import annotations

import inspect
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, TextIO, Tuple

_BYTES_PER_LINE = 16
_HEX_COLUMN_WIDTH = 3 * _BYTES_PER_LINE


@dataclass
class _OutputTarget:
    writer: Optional[TextIO] = None

    def stream(self) -> TextIO:
        return self.writer if self.writer is not None else sys.stdout


_OUTPUT = _OutputTarget()


def set_output(writer: Optional[TextIO]) -> None:
    """Send all output to ``writer``; None restores standard output."""
    _OUTPUT.writer = writer


def global_print(text: str) -> None:
    _OUTPUT.stream().write(text)


def _location_of_log_caller() -> Tuple[str, int]:
    frame = inspect.currentframe()
    for _ in range(2):
        if frame is None:
            break
        frame = frame.f_back
    if frame is None:
        return ("<unknown>", 0)
    return (Path(frame.f_code.co_filename).name, frame.f_lineno)


def _log(tag: str, message: str, location: Tuple[str, int]) -> None:
    file, line = location
    global_print(f"{tag} {file}:{line:<3}: {message}\n")


def info(message: str) -> None:
    _log("[INFO] ", message, _location_of_log_caller())


def warn(message: str) -> None:
    _log("[WARN] ", message, _location_of_log_caller())


def error(message: str) -> None:
    _log("[ERROR]", message, _location_of_log_caller())


def hexdump_lines(data: bytes) -> Iterator[str]:
    """Yield hex dump lines of 16 bytes each, with an ASCII column."""
    data = bytes(data)
    for offset in range(0, len(data), _BYTES_PER_LINE):
        chunk = data[offset : offset + _BYTES_PER_LINE]
        hex_part = "".join(f"{b:02X} " for b in chunk).ljust(_HEX_COLUMN_WIDTH)
        # A trailing partial line also shows 0x7F as itself.
        last_printable = 0x7E if len(chunk) == _BYTES_PER_LINE else 0x7F
        ascii_part = "".join(chr(b) if 0x20 <= b <= last_printable else "." for b in chunk)
        yield f"{offset:08X}: {hex_part}|{ascii_part}|"


def hexdump_bytes(data: bytes) -> None:
    for line in hexdump_lines(data):
        global_print(line + "\n")