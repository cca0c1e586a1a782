"""PCI Express configuration space access through the ECAM window."""

from __future__ import annotations

import functools
import struct
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from .acpi import AcpiMcfgDescriptor
from .errors import WasabiError
from .printing import info

Buffer = Union[bytearray, memoryview]

CONFIG_SPACE_SIZE = 1 << 24
_FUNCTION_SHIFT = 12
_REGISTER_SPACE = 256

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U32_MASK = 0xFFFFFFFF
_U64_MASK = (1 << 64) - 1

_REG_COMMAND_AND_STATUS = 0x04
_REG_BAR0 = 0x10
_BUS_MASTER_ENABLE = 1 << 2
_INTERRUPT_DISABLE = 1 << 10


@dataclass(frozen=True)
class VendorDeviceId:
    vendor: int
    device: int

    def __str__(self) -> str:
        return f"(vendor: 0x{self.vendor:04X}, device: 0x{self.device:04X})"


@functools.total_ordering
class BusDeviceFunction:
    """A PCI function address packed into 16 bits."""

    __slots__ = ("_id",)

    def __init__(self, bus: int, device: int, function: int) -> None:
        if not (0 <= bus < 256 and 0 <= device < 32 and 0 <= function < 8):
            raise WasabiError("PCI bus device function out of range")
        self._id = (bus << 8) | (device << 3) | function

    @property
    def id(self) -> int:
        return self._id

    @property
    def bus(self) -> int:
        return (self._id & 0xFF00) >> 8

    @property
    def device(self) -> int:
        return (self._id & 0x00F8) >> 3

    @property
    def function(self) -> int:
        return self._id & 0x0007

    @classmethod
    def iter_all(cls) -> Iterator["BusDeviceFunction"]:
        """Every possible function address, in ascending order."""
        for i in range(0x10000):
            yield cls(i >> 8, (i >> 3) & 0b11111, i & 0b111)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BusDeviceFunction):
            return NotImplemented
        return self._id == other._id

    def __lt__(self, other: "BusDeviceFunction") -> bool:
        if not isinstance(other, BusDeviceFunction):
            return NotImplemented
        return self._id < other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return (
            f"/pci/bus/0x{self.bus:02X}/device/0x{self.device:02X}"
            f"/function/0x{self.function:X})"
        )

    __repr__ = __str__


@dataclass(frozen=True)
class BarMem64:
    """A 64-bit memory BAR: where the region is and how large it is."""

    addr: int
    size: int

    def __repr__(self) -> str:
        return f"BarMem64[0x{self.addr:016X}..0x{self.addr + self.size:016X}]"


class Pci:
    """Configuration space of the functions behind one ECAM window.

    ``config_space`` holds the window's bytes from its start. It may be
    shorter than the full window: functions beyond it read as all ones,
    as absent functions do, and writes to them are dropped.
    """

    def __init__(self, base: int, config_space: Buffer) -> None:
        self.ecm_range = range(base, base + CONFIG_SPACE_SIZE)
        self._space = config_space

    @classmethod
    def from_mcfg(cls, mcfg: AcpiMcfgDescriptor, config_space: Buffer) -> "Pci":
        """Use the single ECAM entry of ``mcfg``."""
        if mcfg.num_of_entries() != 1:
            raise WasabiError("Expected exactly one MCFG entry")
        entry = mcfg.entry(0)
        if entry is None:
            raise WasabiError("Out of range")
        return cls(entry.base_address, config_space)

    def ecm_offset(self, bdf: BusDeviceFunction) -> int:
        """Offset of the function's configuration registers in the window."""
        return bdf.id << _FUNCTION_SHIFT

    def _position(self, bdf: BusDeviceFunction, byte_offset: int, size: int, op: str) -> int:
        if not 0 <= byte_offset < _REGISTER_SPACE or byte_offset % size != 0:
            raise WasabiError(f"PCI ConfigRegisters {op} out of range")
        return self.ecm_offset(bdf) + byte_offset

    def _read(self, bdf: BusDeviceFunction, byte_offset: int, layout: struct.Struct) -> int:
        pos = self._position(bdf, byte_offset, layout.size, "read")
        if pos + layout.size > len(self._space):
            return (1 << (8 * layout.size)) - 1
        return layout.unpack_from(self._space, pos)[0]

    def _write(self, bdf: BusDeviceFunction, byte_offset: int, layout: struct.Struct, data: int) -> None:
        pos = self._position(bdf, byte_offset, layout.size, "write")
        if pos + layout.size <= len(self._space):
            layout.pack_into(self._space, pos, data)

    def read_register_u16(self, bdf: BusDeviceFunction, byte_offset: int) -> int:
        return self._read(bdf, byte_offset, _U16)

    def read_register_u32(self, bdf: BusDeviceFunction, byte_offset: int) -> int:
        return self._read(bdf, byte_offset, _U32)

    def write_register_u32(self, bdf: BusDeviceFunction, byte_offset: int, data: int) -> None:
        if not 0 <= data <= _U32_MASK:
            raise ValueError("data must fit in 32 bits")
        self._write(bdf, byte_offset, _U32, data)

    def read_register_u64(self, bdf: BusDeviceFunction, byte_offset: int) -> int:
        lo = self.read_register_u32(bdf, byte_offset)
        hi = self.read_register_u32(bdf, byte_offset + 4)
        return (hi << 32) | lo

    def write_register_u64(self, bdf: BusDeviceFunction, byte_offset: int, data: int) -> None:
        if not 0 <= data <= _U64_MASK:
            raise ValueError("data must fit in 64 bits")
        self.write_register_u32(bdf, byte_offset, data & _U32_MASK)
        self.write_register_u32(bdf, byte_offset + 4, data >> 32)

    def read_vendor_id_and_device_id(self, bdf: BusDeviceFunction) -> Optional[VendorDeviceId]:
        """The function's ids, or None when nothing is connected there."""
        try:
            vendor = self.read_register_u16(bdf, 0)
            device = self.read_register_u16(bdf, 2)
        except WasabiError:
            return None
        if vendor == 0xFFFF or device == 0xFFFF:
            return None
        return VendorDeviceId(vendor, device)

    def probe_devices(self) -> List[Tuple[BusDeviceFunction, VendorDeviceId]]:
        """Log and return every connected function."""
        found = []
        for bdf in BusDeviceFunction.iter_all():
            vd = self.read_vendor_id_and_device_id(bdf)
            if vd is not None:
                info(str(vd))
                found.append((bdf, vd))
        return found

    def try_bar0_mem64(self, bdf: BusDeviceFunction) -> BarMem64:
        """Locate and size BAR0, which must be 64-bit non-prefetchable memory."""
        bar0 = self.read_register_u64(bdf, _REG_BAR0)
        if bar0 & 0b0111 != 0b0100:
            raise WasabiError("Unexpected BAR0 Type")
        addr = bar0 & ~0b1111
        self.write_register_u64(bdf, _REG_BAR0, _U64_MASK)
        size = (1 + (~(self.read_register_u64(bdf, _REG_BAR0) & ~0b1111) & _U64_MASK)) & _U64_MASK
        self.write_register_u64(bdf, _REG_BAR0, bar0)
        return BarMem64(addr, size)

    def set_command_and_status_flags(self, bdf: BusDeviceFunction, flags: int) -> None:
        current = self.read_register_u32(bdf, _REG_COMMAND_AND_STATUS)
        self.write_register_u32(bdf, _REG_COMMAND_AND_STATUS, flags | current)

    def enable_bus_master(self, bdf: BusDeviceFunction) -> None:
        self.set_command_and_status_flags(bdf, _BUS_MASTER_ENABLE)

    def disable_interrupt(self, bdf: BusDeviceFunction) -> None:
        self.set_command_and_status_flags(bdf, _INTERRUPT_DISABLE)