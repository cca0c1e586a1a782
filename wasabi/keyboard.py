"""Keyboard events decoded from USB HID boot-protocol reports."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

_SYMBOLS = {
    42: "\x08",
    44: " ",
    45: "-",
    51: ":",
    54: ",",
    55: ".",
    56: "/",
}


class KeyKind(enum.Enum):
    NONE = "None"
    CHAR = "Char"
    UNKNOWN = "Unknown"
    ENTER = "Enter"


@dataclass(frozen=True)
class KeyEvent:
    """A key press; characters carry their text, unknown keys their usage id."""

    kind: KeyKind
    char: Optional[str] = None
    code: Optional[int] = None

    @classmethod
    def of_char(cls, c: str) -> "KeyEvent":
        return cls(KeyKind.CHAR, char=c)

    @classmethod
    def unknown(cls, code: int) -> "KeyEvent":
        return cls(KeyKind.UNKNOWN, code=code)

    @classmethod
    def from_usb_key_id(cls, usage_id: int) -> "KeyEvent":
        """Translate a HID keyboard usage id into an event."""
        if not 0 <= usage_id <= 0xFF:
            raise ValueError("usage id must fit in a byte")
        if usage_id == 0:
            return cls(KeyKind.NONE)
        if 4 <= usage_id <= 29:
            return cls.of_char(chr(ord("a") + usage_id - 4))
        if 30 <= usage_id <= 39:
            return cls.of_char(chr(ord("0") + (usage_id + 1) % 10))
        if usage_id == 40:
            return cls(KeyKind.ENTER)
        symbol = _SYMBOLS.get(usage_id)
        if symbol is not None:
            return cls.of_char(symbol)
        return cls.unknown(usage_id)

    def to_char(self) -> Optional[str]:
        """The text this key produces, or None if it produces none."""
        if self.kind is KeyKind.CHAR:
            return self.char
        if self.kind is KeyKind.ENTER:
            return "\n"
        return None

    def __repr__(self) -> str:
        if self.kind is KeyKind.CHAR:
            return f"Char({self.char!r})"
        if self.kind is KeyKind.UNKNOWN:
            return f"Unknown({self.code})"
        return self.kind.value


class KeyboardReportTracker:
    """Turns successive boot-protocol reports into key-down events."""

    def __init__(self) -> None:
        self._prev_pressed: FrozenSet[int] = frozenset()

    def feed(self, report: bytes) -> List[KeyEvent]:
        """Events for keys pressed in ``report`` that were not pressed before."""
        pressed = frozenset(b for b in bytes(report)[2:] if b != 0)
        events = [KeyEvent.from_usb_key_id(i) for i in sorted(pressed - self._prev_pressed)]
        self._prev_pressed = pressed
        return events