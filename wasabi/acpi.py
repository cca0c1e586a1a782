"""ACPI tables read out of a physical memory image."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from .errors import WasabiError
from .hpet import HpetRegisters

Memory = Union[bytes, bytearray, memoryview]

_HEADER = struct.Struct("<4sI28x")
_U64 = struct.Struct("<Q")
_GENERIC_ADDRESS = struct.Struct("<B3xQ")
_ECAM_ENTRY = struct.Struct("<QHBB4x")
_RSDP = struct.Struct("<8sB6sBIIQ")


def _unpack(layout: struct.Struct, memory: Memory, address: int) -> tuple:
    if address < 0 or address + layout.size > len(memory):
        raise WasabiError("ACPI structure lies outside of memory")
    return layout.unpack_from(memory, address)


@dataclass(frozen=True)
class SystemDescriptionTableHeader:
    """The 36-byte header that starts every ACPI description table."""

    SIZE = _HEADER.size

    address: int
    signature: bytes
    length: int

    @classmethod
    def from_memory(cls, memory: Memory, address: int) -> "SystemDescriptionTableHeader":
        signature, length = _unpack(_HEADER, memory, address)
        return cls(address, signature, length)

    def expect_signature(self, sig: bytes) -> None:
        if self.signature != bytes(sig):
            raise WasabiError("Unexpected ACPI table signature")


def _checked_header(memory: Memory, address: int, min_length: int) -> SystemDescriptionTableHeader:
    header = SystemDescriptionTableHeader.from_memory(memory, address)
    if header.length < min_length:
        raise WasabiError("ACPI table is shorter than its fixed part")
    return header


class Xsdt:
    """Extended System Description Table: a list of 64-bit table addresses."""

    def __init__(self, memory: Memory, header: SystemDescriptionTableHeader) -> None:
        self._memory = memory
        self.header = header

    @classmethod
    def from_memory(cls, memory: Memory, address: int) -> "Xsdt":
        return cls(memory, _checked_header(memory, address, SystemDescriptionTableHeader.SIZE))

    @property
    def num_of_entries(self) -> int:
        return (self.header.length - SystemDescriptionTableHeader.SIZE) // _U64.size

    def __iter__(self) -> Iterator[SystemDescriptionTableHeader]:
        base = self.header.address + SystemDescriptionTableHeader.SIZE
        for i in range(self.num_of_entries):
            (table_address,) = _unpack(_U64, self._memory, base + i * _U64.size)
            yield SystemDescriptionTableHeader.from_memory(self._memory, table_address)

    def find_table(self, sig: bytes) -> Optional[SystemDescriptionTableHeader]:
        sig = bytes(sig)
        return next((e for e in self if e.signature == sig), None)


@dataclass(frozen=True)
class GenericAddress:
    """An ACPI Generic Address Structure."""

    address_space_id: int
    address: int

    @classmethod
    def _from_memory(cls, memory: Memory, address: int) -> "GenericAddress":
        return cls(*_unpack(_GENERIC_ADDRESS, memory, address))

    def address_in_memory_space(self) -> int:
        if self.address_space_id != 0:
            raise WasabiError("ACPI Generic Address is not in system memory space")
        return self.address


@dataclass(frozen=True)
class AcpiHpetDescriptor:
    """The HPET description table."""

    SIGNATURE = b"HPET"
    SIZE = 56

    header: SystemDescriptionTableHeader
    address: GenericAddress
    memory: Memory = field(compare=False, repr=False)

    @classmethod
    def from_memory(cls, memory: Memory, address: int) -> "AcpiHpetDescriptor":
        header = SystemDescriptionTableHeader.from_memory(memory, address)
        header.expect_signature(cls.SIGNATURE)
        generic = GenericAddress._from_memory(memory, address + 40)
        return cls(header, generic, memory)

    def base_address(self) -> HpetRegisters:
        """The HPET register block; writable when the memory is."""
        base = self.address.address_in_memory_space()
        if base + HpetRegisters.SIZE > len(self.memory):
            raise WasabiError("HPET registers lie outside of memory")
        return HpetRegisters(memoryview(self.memory)[base : base + HpetRegisters.SIZE])


@dataclass(frozen=True)
class EcamEntry:
    """One PCI Express configuration space allocation."""

    base_address: int
    pci_segment_group: int
    start_pci_bus: int
    end_pci_bus: int

    def __str__(self) -> str:
        return (
            f"ECAM: Bus [{self.start_pci_bus}..={self.end_pci_bus}] "
            f"is mapped at 0x{self.base_address:X}"
        )


@dataclass(frozen=True)
class AcpiMcfgDescriptor:
    """The MCFG table listing PCI Express configuration spaces."""

    SIGNATURE = b"MCFG"
    HEADER_SIZE = 44

    header: SystemDescriptionTableHeader
    memory: Memory = field(compare=False, repr=False)

    @classmethod
    def from_memory(cls, memory: Memory, address: int) -> "AcpiMcfgDescriptor":
        header = _checked_header(memory, address, cls.HEADER_SIZE)
        header.expect_signature(cls.SIGNATURE)
        return cls(header, memory)

    def num_of_entries(self) -> int:
        return (self.header.length - self.HEADER_SIZE) // _ECAM_ENTRY.size

    def entry(self, index: int) -> Optional[EcamEntry]:
        if not 0 <= index < self.num_of_entries():
            return None
        offset = self.header.address + self.HEADER_SIZE + index * _ECAM_ENTRY.size
        return EcamEntry(*_unpack(_ECAM_ENTRY, self.memory, offset))


@dataclass(frozen=True)
class AcpiRsdp:
    """Root System Description Pointer, the entry point to the ACPI tables."""

    signature: bytes
    checksum: int
    oem_id: bytes
    revision: int
    rsdt_address: int
    length: int
    xsdt_address: int
    memory: Memory = field(compare=False, repr=False)

    @classmethod
    def from_memory(cls, memory: Memory, address: int) -> "AcpiRsdp":
        return cls(*_unpack(_RSDP, memory, address), memory)

    def xsdt(self) -> Xsdt:
        return Xsdt.from_memory(self.memory, self.xsdt_address)

    def hpet(self) -> Optional[AcpiHpetDescriptor]:
        header = self.xsdt().find_table(AcpiHpetDescriptor.SIGNATURE)
        if header is None:
            return None
        return AcpiHpetDescriptor.from_memory(self.memory, header.address)

    def mcfg(self) -> Optional[AcpiMcfgDescriptor]:
        header = self.xsdt().find_table(AcpiMcfgDescriptor.SIGNATURE)
        if header is None:
            return None
        return AcpiMcfgDescriptor.from_memory(self.memory, header.address)