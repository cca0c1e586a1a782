"""First-fit allocator that hands out addresses from free memory regions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import WasabiError
from .uefi import PAGE_SIZE, EfiMemoryType, MemoryMapHolder

HEADER_SIZE = 32
_USIZE_BITS = 64
_USIZE_MASK = (1 << _USIZE_BITS) - 1


def round_up_to_nearest_pow2(v: int) -> int:
    """Smallest power of two that is not less than ``v``.

    Raises WasabiError for 0 and for values beyond the 64-bit range.
    """
    if v < 0:
        raise ValueError("value must not be negative")
    bits = ((v - 1) & _USIZE_MASK).bit_length()
    if bits >= _USIZE_BITS:
        raise WasabiError("Out of range")
    return 1 << bits


@dataclass(eq=False)
class _Header:
    address: int
    size: int
    is_allocated: bool = False

    @property
    def end_addr(self) -> int:
        return self.address + self.size

    def can_provide(self, size: int, align: int) -> bool:
        # Rough check: one header for the allocation, another for padding.
        return self.size >= size + HEADER_SIZE * 2 + align

    def __repr__(self) -> str:
        return (
            f"Header @ 0x{self.address:016X} "
            f"{{ size: 0x{self.size:016X}, is_allocated: {str(self.is_allocated).lower()} }}"
        )


class FirstFitAllocator:
    """Carves allocations from the end of the first region that fits.

    Every region, free or allocated, starts with a header of HEADER_SIZE
    bytes; freed regions are marked free and never merged.
    """

    def __init__(self) -> None:
        self._chain: List[_Header] = []
        self._allocated: Dict[int, _Header] = {}

    def _provide(self, index: int, header: _Header, size: int, align: int) -> Optional[int]:
        try:
            size = max(round_up_to_nearest_pow2(size), HEADER_SIZE)
        except WasabiError:
            return None
        align = max(align, HEADER_SIZE)
        if header.is_allocated or not header.can_provide(size, align):
            return None
        allocated_addr = (header.end_addr - size) & ~(align - 1)
        allocated = _Header(allocated_addr - HEADER_SIZE, size + HEADER_SIZE, True)
        new_headers = [allocated]
        size_used = allocated.size
        if allocated.end_addr != header.end_addr:
            padding = _Header(allocated.end_addr, header.end_addr - allocated.end_addr)
            size_used += padding.size
            new_headers.append(padding)
        if header.size < size_used + HEADER_SIZE:
            raise WasabiError("Allocator region bookkeeping is inconsistent")
        header.size -= size_used
        self._chain[index + 1 : index + 1] = new_headers
        self._allocated[allocated_addr] = allocated
        return allocated_addr

    def alloc(self, size: int, align: int = 1) -> int:
        """Allocate ``size`` bytes aligned to ``align`` and return the address."""
        if align <= 0 or align & (align - 1):
            raise ValueError("alignment must be a power of two")
        for index, header in enumerate(self._chain):
            address = self._provide(index, header, size, align)
            if address is not None:
                return address
        raise MemoryError("No free region can provide the requested allocation")

    def dealloc(self, address: int) -> None:
        """Mark the allocation at ``address`` as free."""
        header = self._allocated.pop(address, None)
        if header is None:
            raise WasabiError("Address is not an allocation of this allocator")
        header.is_allocated = False

    def init_with_mmap(self, memory_map: MemoryMapHolder) -> None:
        """Add every conventional memory range of the map as free memory."""
        for descriptor in memory_map:
            if descriptor.memory_type != EfiMemoryType.CONVENTIONAL_MEMORY:
                continue
            self.add_free_region(
                descriptor.physical_start, descriptor.number_of_pages * PAGE_SIZE
            )

    def add_free_region(self, start: int, size: int) -> None:
        """Add a free region; page 0 is never handed out and tiny regions are ignored."""
        if start == 0:
            start += PAGE_SIZE
            size = max(0, size - PAGE_SIZE)
        if size <= PAGE_SIZE:
            return
        self._chain.insert(0, _Header(start, size))

    def regions(self) -> Iterator[Tuple[int, int, bool]]:
        """Yield ``(header_address, size, is_allocated)`` in search order."""
        for header in self._chain:
            yield (header.address, header.size, header.is_allocated)