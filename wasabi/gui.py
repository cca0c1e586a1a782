"""The global frame buffer that drawing code shares."""

from __future__ import annotations

from typing import Tuple

from .mutex import Mutex
from .uefi import VramBufferInfo

GLOBAL_VRAM: Mutex[VramBufferInfo] = Mutex(VramBufferInfo.null())


def set_global_vram(vram: VramBufferInfo) -> None:
    """Make ``vram`` the frame buffer used by everything that draws."""
    with GLOBAL_VRAM.lock() as guard:
        guard.value = vram


def global_vram() -> VramBufferInfo:
    """The frame buffer currently in use."""
    with GLOBAL_VRAM.lock() as guard:
        return guard.value


def global_vram_resolutions() -> Tuple[int, int]:
    """Width and height of the global frame buffer."""
    with GLOBAL_VRAM.lock() as guard:
        return (guard.value.width, guard.value.height)