"""Text console: line input and the built-in commands."""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

from .errors import WasabiError
from .executor import sleep, spawn_global, yield_execution
from .graphics import Rect, draw_button
from .gui import GLOBAL_VRAM, global_vram_resolutions
from .hpet import global_timestamp
from .input import GLOBAL_INPUT_MANAGER, MouseEvent, PointerPosition
from .keyboard import KeyEvent, KeyKind
from .printing import error, global_print, info, warn
from .tablet import set_debug_mouse
from .uefi import efi_memory_map

_DEMO_STEP = timedelta(milliseconds=10)


def _arg(args: Sequence[str], index: int) -> str:
    return args[index] if len(args) > index else ""


class Console:
    """Collects typed characters and runs the line on Enter."""

    def __init__(self) -> None:
        self.input_buf = ""

    def handle_key_down(self, e: KeyEvent) -> None:
        if e.kind is KeyKind.CHAR:
            self.input_buf += e.char
            global_print(e.char)
        elif e.kind is KeyKind.ENTER:
            global_print("\n")
            try:
                run_cmd(self.input_buf)
            except WasabiError as err:
                error(f"{err}: {self.input_buf}")
            self.input_buf = ""
        else:
            warn(f"Unhandled input: {e!r}")


def run_cmd_debug(args: Sequence[str]) -> None:
    if _arg(args, 1) == "mouse":
        choice = _arg(args, 2)
        if choice == "on":
            set_debug_mouse(True)
            info("mouse debug is on")
            return
        if choice == "off":
            set_debug_mouse(False)
            info("mouse debug is off")
            return
        error("Expected on or off")
    info("Usage:")
    info("- debug mouse on|off")


def run_cmd_show(args: Sequence[str]) -> None:
    if _arg(args, 1) == "mmap":
        memory_map = efi_memory_map()
        if memory_map is not None:
            for e in memory_map:
                global_print(f"{e!r}\n")
        else:
            global_print("EFI_MEMORY_MAP is not set\n")
    info("Usage:")
    info("- show mmap")


def run_cmd(cmdline: str) -> None:
    """Run one command line; raises WasabiError for an unknown command."""
    args = cmdline.strip().split(" ")
    cmd = args[0]
    if cmd == "time":
        global_print(f"{global_timestamp()}\n")
    elif cmd == "debug":
        run_cmd_debug(args)
    elif cmd == "show":
        run_cmd_show(args)
    elif cmd == "demo":
        run_cmd_demo(args)
    elif cmd != "":
        raise WasabiError("Unknown command")


async def _demo_mouse_event_inject_task() -> None:
    w, h = global_vram_resolutions()
    x = y = 0
    dx = dy = 8
    for _ in range(1000):
        x += dx
        y += dy
        if not 0 <= x < w:
            dx = -dx
            x += 2 * dx
        if not 0 <= y < h:
            dy = -dy
            y += 2 * dy
        GLOBAL_INPUT_MANAGER.push_mouse_event(MouseEvent(position=PointerPosition(x, y)))
        await sleep(_DEMO_STEP)


def _is_rect_pressed(rect: Rect) -> bool:
    e = GLOBAL_INPUT_MANAGER.current_mouse_state()
    return e.button.left and rect.contains_point(e.position.x, e.position.y)


async def _demo_button_task() -> None:
    vw, vh = global_vram_resolutions()
    left, top = vw // 2, vh // 2
    button_rect = Rect(left, top, 128, 32)
    is_pressed_prev = True
    while True:
        is_pressed = _is_rect_pressed(button_rect)
        if is_pressed != is_pressed_prev:
            with GLOBAL_VRAM.lock() as guard:
                try:
                    draw_button(guard.value, left, top, 128, 32, 0xCCCCCC, is_pressed)
                except WasabiError:
                    pass
        await yield_execution()
        is_pressed_prev = is_pressed


def run_cmd_demo(args: Sequence[str]) -> None:
    subcmd = _arg(args, 1)
    if subcmd == "mouse":
        spawn_global(_demo_mouse_event_inject_task())
    elif subcmd == "button":
        spawn_global(_demo_button_task())
    else:
        info("Usage:")
        info("- demo mouse")
        info("- demo button")