import struct

import pytest

from wasabi.errors import WasabiError
from wasabi.uefi import (
    DESCRIPTOR_SIZE,
    EFI_ACPI_TABLE_GUID,
    EFI_GRAPHICS_OUTPUT_PROTOCOL_GUID,
    EfiGuid,
    EfiMemoryDescriptor,
    EfiMemoryType,
    MemoryMapHolder,
    VramBufferInfo,
    efi_memory_map,
    set_efi_memory_map,
)


@pytest.fixture(autouse=True)
def _reset_memory_map():
    set_efi_memory_map(None)
    yield
    set_efi_memory_map(None)


def _sample_descriptors():
    return [
        EfiMemoryDescriptor(EfiMemoryType.CONVENTIONAL_MEMORY, 0x1000, 0, 2, 0xF),
        EfiMemoryDescriptor(EfiMemoryType.LOADER_CODE, 0x100000, 0, 16, 0),
        EfiMemoryDescriptor(EfiMemoryType.ACPI_RECLAIM_MEMORY, 0x7F000000, 0, 4, 0x8),
    ]


def test_guid_round_trip():
    data = EFI_GRAPHICS_OUTPUT_PROTOCOL_GUID.to_bytes()
    assert len(data) == 16
    assert EfiGuid.from_bytes(data) == EFI_GRAPHICS_OUTPUT_PROTOCOL_GUID


def test_guid_wire_layout_is_little_endian():
    data = EFI_ACPI_TABLE_GUID.to_bytes()
    assert data[:4] == struct.pack("<I", 0x8868E871)
    assert data[8:] == bytes([0xBC, 0x22, 0x00, 0x80, 0xC7, 0x3C, 0x88, 0x81])


def test_guid_rejects_short_data():
    with pytest.raises(WasabiError):
        EfiGuid.from_bytes(b"\x00" * 15)


def test_guid_rejects_wrong_data3_length():
    with pytest.raises(ValueError):
        EfiGuid(0, 0, 0, b"\x00" * 7)


@pytest.mark.parametrize(
    "raw_type, expected",
    [
        (0, EfiMemoryType.RESERVED),
        (7, EfiMemoryType.CONVENTIONAL_MEMORY),
        (14, EfiMemoryType.PERSISTENT_MEMORY),
    ],
)
def test_memory_type_values(raw_type, expected):
    data = struct.pack("<qQQQQ", raw_type, 0x2000, 0, 3, 0)
    decoded = EfiMemoryDescriptor.from_bytes(data)
    assert decoded == EfiMemoryDescriptor(expected, 0x2000, 0, 3, 0)
    encoded = EfiMemoryDescriptor(expected, 0x2000, 0, 3, 0).to_bytes()
    assert struct.unpack_from("<q", encoded)[0] == raw_type


def test_descriptor_round_trip():
    for d in _sample_descriptors():
        data = d.to_bytes()
        assert len(data) == DESCRIPTOR_SIZE
        assert EfiMemoryDescriptor.from_bytes(data) == d


def test_descriptor_unknown_type_raises():
    data = struct.pack("<qQQQQ", 99, 0, 0, 1, 0)
    with pytest.raises(WasabiError):
        EfiMemoryDescriptor.from_bytes(data)


def test_descriptor_repr():
    d = _sample_descriptors()[0]
    text = repr(d)
    assert "[0x000000001000-0x000000003000)" in text
    assert "CONVENTIONAL_MEMORY" in text
    assert text.startswith("EfiMemoryDescriptor {")


def test_memory_map_iterates_descriptors():
    descriptors = _sample_descriptors()
    mmap = MemoryMapHolder.from_descriptors(descriptors)
    assert list(mmap) == descriptors
    assert len(mmap) == len(descriptors)


def test_memory_map_with_padded_descriptors():
    descriptors = _sample_descriptors()
    mmap = MemoryMapHolder.from_descriptors(descriptors, 48)
    assert mmap.memory_map_size == 48 * len(descriptors)
    assert list(mmap) == descriptors


def test_memory_map_descriptor_size_too_small():
    with pytest.raises(ValueError):
        MemoryMapHolder.from_descriptors(_sample_descriptors(), 8)


def test_memory_map_overflowing_buffer_raises():
    many = [_sample_descriptors()[0]] * 1000
    with pytest.raises(WasabiError):
        MemoryMapHolder.from_descriptors(many)


def test_empty_memory_map():
    assert list(MemoryMapHolder()) == []


def test_global_memory_map():
    assert efi_memory_map() is None
    mmap = MemoryMapHolder.from_descriptors(_sample_descriptors())
    set_efi_memory_map(mmap)
    assert efi_memory_map() is mmap


def test_null_vram_has_no_pixels():
    vram = VramBufferInfo.null()
    assert (vram.width, vram.height) == (0, 0)
    assert vram.is_in_x_range(0) is False
    assert vram.pixel_at(0, 0) is None