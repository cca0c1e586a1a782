"""High Precision Event Timer registers and the global timestamp."""

from __future__ import annotations

import struct
from datetime import timedelta
from typing import Optional

from .errors import WasabiError
from .mutex import Mutex

TIMER_CONFIG_LEVEL_TRIGGER = 1 << 1
TIMER_CONFIG_INT_ENABLE = 1 << 2
TIMER_CONFIG_USE_PERIODIC_MODE = 1 << 3
_TIMER_CONFIG_INT_ROUTE = 0b11111 << 9
_TIMER_CONFIG_CLEAR = (
    TIMER_CONFIG_INT_ENABLE
    | TIMER_CONFIG_USE_PERIODIC_MODE
    | TIMER_CONFIG_LEVEL_TRIGGER
    | _TIMER_CONFIG_INT_ROUTE
)

FEMTOSECONDS_PER_SECOND = 1_000_000_000_000_000

_U64 = struct.Struct("<Q")
_U64_MASK = (1 << 64) - 1


class HpetRegisters:
    """The 0x500-byte HPET register block, viewed through a writable buffer."""

    SIZE = 0x500
    NUM_TIMER_SLOTS = 32
    _CAPABILITIES = 0x00
    _CONFIGURATION = 0x10
    _MAIN_COUNTER = 0xF0
    _TIMERS = 0x100
    _TIMER_STRIDE = 0x20

    def __init__(self, buf=None) -> None:
        if buf is None:
            buf = bytearray(self.SIZE)
        elif len(buf) < self.SIZE:
            raise ValueError("buffer is smaller than the HPET register block")
        self._buf = buf

    def _read(self, offset: int) -> int:
        return _U64.unpack_from(self._buf, offset)[0]

    def _write(self, offset: int, value: int) -> None:
        _U64.pack_into(self._buf, offset, value & _U64_MASK)

    @property
    def capabilities_and_id(self) -> int:
        return self._read(self._CAPABILITIES)

    @capabilities_and_id.setter
    def capabilities_and_id(self, value: int) -> None:
        self._write(self._CAPABILITIES, value)

    @property
    def configuration(self) -> int:
        return self._read(self._CONFIGURATION)

    @configuration.setter
    def configuration(self, value: int) -> None:
        self._write(self._CONFIGURATION, value)

    @property
    def main_counter_value(self) -> int:
        return self._read(self._MAIN_COUNTER)

    @main_counter_value.setter
    def main_counter_value(self, value: int) -> None:
        self._write(self._MAIN_COUNTER, value)

    def _timer_offset(self, index: int) -> int:
        if not 0 <= index < self.NUM_TIMER_SLOTS:
            raise IndexError("HPET timer index out of range")
        return self._TIMERS + index * self._TIMER_STRIDE

    def timer_config(self, index: int) -> int:
        return self._read(self._timer_offset(index))

    def set_timer_config(self, index: int, value: int) -> None:
        self._write(self._timer_offset(index), value)


class Hpet:
    """A started HPET: timers quiesced, main counter reset and running."""

    def __init__(self, registers: HpetRegisters) -> None:
        capabilities = registers.capabilities_and_id
        fs_per_count = capabilities >> 32
        if fs_per_count == 0:
            raise WasabiError("HPET reports a zero counter period")
        self.registers = registers
        self.num_of_timers = ((capabilities >> 8) & 0b11111) + 1
        self.freq = FEMTOSECONDS_PER_SECOND // fs_per_count
        self._globally_disable()
        for i in range(self.num_of_timers):
            config = registers.timer_config(i) & ~_TIMER_CONFIG_CLEAR
            registers.set_timer_config(i, config)
        registers.main_counter_value = 0
        self._globally_enable()

    def _globally_disable(self) -> None:
        self.registers.configuration = self.registers.configuration & ~0b11

    def _globally_enable(self) -> None:
        self.registers.configuration = self.registers.configuration | 0b01

    def main_counter(self) -> int:
        return self.registers.main_counter_value


_HPET: Mutex[Optional[Hpet]] = Mutex(None)


def set_global_hpet(hpet: Hpet) -> None:
    """Install the system HPET; it may be installed only once."""
    with _HPET.lock() as guard:
        if guard.value is not None:
            raise WasabiError("Global HPET is already set")
        guard.value = hpet


def clear_global_hpet() -> None:
    with _HPET.lock() as guard:
        guard.value = None


def global_timestamp() -> timedelta:
    """Time since the HPET was started, or zero when there is none."""
    with _HPET.lock() as guard:
        hpet = guard.value
        if hpet is None:
            return timedelta(0)
        ns = (hpet.main_counter() * 1_000_000_000 // hpet.freq) & _U64_MASK
    return timedelta(microseconds=ns // 1000)