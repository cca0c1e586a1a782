"""UEFI data structures: GUIDs, memory maps and the frame buffer description."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .errors import WasabiError
from .graphics import Bitmap
from .mutex import Mutex

PAGE_SIZE = 4096
MEMORY_MAP_BUFFER_SIZE = 0x8000

_GUID = struct.Struct("<IHH8s")
_DESCRIPTOR = struct.Struct("<qQQQQ")
DESCRIPTOR_SIZE = _DESCRIPTOR.size


@dataclass(frozen=True)
class EfiGuid:
    """A 128-bit identifier in the mixed-endian layout used by the firmware."""

    data0: int
    data1: int
    data2: int
    data3: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data3", bytes(self.data3))
        if len(self.data3) != 8:
            raise ValueError("data3 must be exactly 8 bytes")

    @classmethod
    def from_bytes(cls, data: bytes) -> "EfiGuid":
        if len(data) < _GUID.size:
            raise WasabiError("data is too short")
        data0, data1, data2, data3 = _GUID.unpack_from(data)
        return cls(data0, data1, data2, data3)

    def to_bytes(self) -> bytes:
        return _GUID.pack(self.data0, self.data1, self.data2, self.data3)


EFI_GRAPHICS_OUTPUT_PROTOCOL_GUID = EfiGuid(
    0x9042A9DE, 0x23DC, 0x4A38, bytes([0x96, 0xFB, 0x7A, 0xDE, 0xD0, 0x80, 0x51, 0x6A])
)
EFI_LOADED_IMAGE_PROTOCOL_GUID = EfiGuid(
    0x5B1B31A1, 0x9562, 0x11D2, bytes([0x8E, 0x3F, 0x00, 0xA0, 0xC9, 0x69, 0x72, 0x3B])
)
EFI_ACPI_TABLE_GUID = EfiGuid(
    0x8868E871, 0xE4F1, 0x11D3, bytes([0xBC, 0x22, 0x00, 0x80, 0xC7, 0x3C, 0x88, 0x81])
)


class EfiMemoryType(enum.IntEnum):
    RESERVED = 0
    LOADER_CODE = 1
    LOADER_DATA = 2
    BOOT_SERVICES_CODE = 3
    BOOT_SERVICES_DATA = 4
    RUNTIME_SERVICES_CODE = 5
    RUNTIME_SERVICES_DATA = 6
    CONVENTIONAL_MEMORY = 7
    UNUSABLE_MEMORY = 8
    ACPI_RECLAIM_MEMORY = 9
    ACPI_MEMORY_NVS = 10
    MEMORY_MAPPED_IO = 11
    MEMORY_MAPPED_IO_PORT_SPACE = 12
    PAL_CODE = 13
    PERSISTENT_MEMORY = 14


@dataclass(frozen=True, repr=False)
class EfiMemoryDescriptor:
    """One entry of the firmware memory map."""

    memory_type: EfiMemoryType
    physical_start: int
    virtual_start: int = 0
    number_of_pages: int = 0
    attribute: int = 0

    @property
    def physical_end(self) -> int:
        return self.physical_start + self.number_of_pages * PAGE_SIZE

    @classmethod
    def from_bytes(cls, data: bytes) -> "EfiMemoryDescriptor":
        if len(data) < _DESCRIPTOR.size:
            raise WasabiError("data is too short")
        raw_type, phys, virt, pages, attr = _DESCRIPTOR.unpack_from(data)
        try:
            memory_type = EfiMemoryType(raw_type)
        except ValueError:
            raise WasabiError("Unknown EFI memory type") from None
        return cls(memory_type, phys, virt, pages, attr)

    def to_bytes(self) -> bytes:
        return _DESCRIPTOR.pack(
            int(self.memory_type),
            self.physical_start,
            self.virtual_start,
            self.number_of_pages,
            self.attribute,
        )

    def __repr__(self) -> str:
        return (
            "EfiMemoryDescriptor { "
            f"phys: [0x{self.physical_start:012X}-0x{self.physical_end:012X}), "
            f"size: ({self.number_of_pages:8} pages), "
            f"attr: 0x{self.attribute:X}, "
            f"type: {self.memory_type.name} }}"
        )


class MemoryMapHolder:
    """A memory map as the firmware hands it over: packed descriptors."""

    def __init__(
        self,
        buffer: bytes = b"",
        descriptor_size: int = DESCRIPTOR_SIZE,
        map_key: int = 0,
        descriptor_version: int = 0,
    ) -> None:
        if descriptor_size < DESCRIPTOR_SIZE:
            raise ValueError("descriptor_size is smaller than a descriptor")
        if len(buffer) > MEMORY_MAP_BUFFER_SIZE:
            raise WasabiError("memory map does not fit in the buffer")
        self._buffer = bytes(buffer)
        self.descriptor_size = descriptor_size
        self.map_key = map_key
        self.descriptor_version = descriptor_version

    @classmethod
    def from_descriptors(
        cls, descriptors: Iterable[EfiMemoryDescriptor], descriptor_size: int = DESCRIPTOR_SIZE
    ) -> "MemoryMapHolder":
        if descriptor_size < DESCRIPTOR_SIZE:
            raise ValueError("descriptor_size is smaller than a descriptor")
        padding = bytes(descriptor_size - DESCRIPTOR_SIZE)
        buffer = b"".join(d.to_bytes() + padding for d in descriptors)
        return cls(buffer, descriptor_size)

    @property
    def memory_map_size(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[EfiMemoryDescriptor]:
        for ofs in range(0, len(self._buffer), self.descriptor_size):
            yield EfiMemoryDescriptor.from_bytes(self._buffer[ofs : ofs + self.descriptor_size])

    def __len__(self) -> int:
        return -(-len(self._buffer) // self.descriptor_size)


class VramBufferInfo(Bitmap):
    """The frame buffer the firmware set up, 4 bytes per pixel."""

    @classmethod
    def null(cls) -> "VramBufferInfo":
        return cls(0, 0, 0)


_EFI_MEMORY_MAP: Mutex[Optional[MemoryMapHolder]] = Mutex(None)


def set_efi_memory_map(memory_map: Optional[MemoryMapHolder]) -> None:
    with _EFI_MEMORY_MAP.lock() as guard:
        guard.value = memory_map


def efi_memory_map() -> Optional[MemoryMapHolder]:
    """The memory map recorded at boot, or None if none was recorded."""
    with _EFI_MEMORY_MAP.lock() as guard:
        return guard.value