"""Mouse state and the queue of pointer events."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Deque, Optional

from .errors import WasabiError
from .executor import sleep
from .graphics import draw_point
from .gui import GLOBAL_VRAM
from .mutex import Mutex

MOUSE_BUTTON_L = 1 << 0
MOUSE_BUTTON_C = 1 << 1
MOUSE_BUTTON_R = 1 << 2

_POINTER_COLOR = 0x00FF00
_POLL_INTERVAL = timedelta(milliseconds=10)


@dataclass(frozen=True)
class MouseButtonState:
    """Pressed buttons as a bit set."""

    bits: int = 0

    @classmethod
    def from_lrc(cls, l: bool, r: bool, c: bool) -> "MouseButtonState":
        return cls(
            MOUSE_BUTTON_L * bool(l) + MOUSE_BUTTON_C * bool(c) + MOUSE_BUTTON_R * bool(r)
        )

    @property
    def left(self) -> bool:
        return bool(self.bits & MOUSE_BUTTON_L)

    @property
    def center(self) -> bool:
        return bool(self.bits & MOUSE_BUTTON_C)

    @property
    def right(self) -> bool:
        return bool(self.bits & MOUSE_BUTTON_R)


@dataclass(frozen=True)
class PointerPosition:
    """Pixel position; the origin is the top-left corner of the screen."""

    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class MouseEvent:
    button: MouseButtonState = field(default_factory=MouseButtonState)
    position: PointerPosition = field(default_factory=PointerPosition)


class InputManager:
    """Queue of pending mouse events plus the latest applied state."""

    def __init__(self) -> None:
        self._mouse_events: Mutex[Deque[MouseEvent]] = Mutex(deque())
        self._current_mouse_state: Mutex[MouseEvent] = Mutex(MouseEvent())

    def push_mouse_event(self, e: MouseEvent) -> None:
        with self._mouse_events.lock() as guard:
            guard.value.append(e)

    def pop_mouse_event(self) -> Optional[MouseEvent]:
        """The oldest pending event, or None when the queue is empty."""
        with self._mouse_events.lock() as guard:
            return guard.value.popleft() if guard.value else None

    def current_mouse_state(self) -> MouseEvent:
        with self._current_mouse_state.lock() as guard:
            return guard.value

    def set_current_mouse_state(self, e: MouseEvent) -> None:
        with self._current_mouse_state.lock() as guard:
            guard.value = e


GLOBAL_INPUT_MANAGER = InputManager()


async def input_task() -> None:
    """Apply queued mouse events forever, marking each position on screen."""
    while True:
        e = GLOBAL_INPUT_MANAGER.pop_mouse_event()
        if e is not None:
            with GLOBAL_VRAM.lock() as guard:
                try:
                    draw_point(guard.value, _POINTER_COLOR, e.position.x, e.position.y)
                except WasabiError:
                    pass
            GLOBAL_INPUT_MANAGER.set_current_mouse_state(e)
        await sleep(_POLL_INTERVAL)