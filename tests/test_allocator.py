import pytest

from wasabi.allocator import HEADER_SIZE, FirstFitAllocator, round_up_to_nearest_pow2
from wasabi.errors import WasabiError
from wasabi.uefi import EfiMemoryDescriptor, EfiMemoryType, MemoryMapHolder

REGION_START = 0x100000
REGION_SIZE = 64 * 1024 * 1024


@pytest.fixture
def allocator():
    a = FirstFitAllocator()
    a.add_free_region(REGION_START, REGION_SIZE)
    return a


def _assert_disjoint(spans):
    ordered = sorted(spans)
    for (_, end0), (start1, _) in zip(ordered, ordered[1:]):
        assert end0 <= start1


def _assert_tiles(allocator, start, size):
    regions = sorted(allocator.regions())
    assert regions[0][0] == start
    for (a, s, _), (b, _, _) in zip(regions, regions[1:]):
        assert a + s == b
    last_addr, last_size, _ = regions[-1]
    assert last_addr + last_size == start + size


def test_round_up_zero_is_out_of_range():
    with pytest.raises(WasabiError, match="Out of range"):
        round_up_to_nearest_pow2(0)


@pytest.mark.parametrize(
    "value,expected",
    [(1, 1), (2, 2), (3, 4), (4, 4), (5, 8), (6, 8), (7, 8), (8, 8), (9, 16)],
)
def test_round_up_to_nearest_pow2(value, expected):
    assert round_up_to_nearest_pow2(value) == expected


def test_round_up_beyond_64_bits_is_out_of_range():
    with pytest.raises(WasabiError):
        round_up_to_nearest_pow2((1 << 63) + 1)


def test_malloc_iterate_free_and_alloc(allocator):
    for i in range(1, 1000):
        address = allocator.alloc(i, 8)
        assert address != 0
        assert address % 8 == 0
        allocator.dealloc(address)
    assert all(not allocated for _, _, allocated in allocator.regions())


def test_malloc_align(allocator):
    for align in [1, 2, 4, 8, 16, 32, 4096]:
        for _ in range(100):
            address = allocator.alloc(1234, align)
            assert address != 0
            assert address % align == 0


def test_malloc_align_random_order(allocator):
    for align in [32, 4096, 8, 4, 16, 2, 1]:
        for _ in range(100):
            address = allocator.alloc(1234, align)
            assert address != 0
            assert address % align == 0


LAYOUTS = [
    (128, 128), (32, 32), (8, 8), (16, 16), (6000, 64), (4, 4), (2, 2),
    (600000, 64), (64, 64), (1, 1), (6000, 64), (6000, 64), (6000, 64),
    (6000, 64), (6000, 64), (6000, 64), (3, 64), (3, 64), (3, 64), (3, 64),
    (3, 64), (3, 64), (3, 64), (3, 64), (3, 64), (3, 64), (6000, 64),
    (6000, 64), (600000, 64), (6000, 64), (60000, 64), (60000, 64),
    (60000, 64), (60000, 64),
]


def test_allocated_objects_have_no_overlap(allocator):
    pointers = [allocator.alloc(size, align) for size, align in LAYOUTS]

    def spans():
        return [(p - HEADER_SIZE, p + size) for p, (size, _) in zip(pointers, LAYOUTS)]

    _assert_disjoint(spans())
    for p, (_, align) in zip(pointers, LAYOUTS):
        assert p % align == 0
        assert REGION_START <= p - HEADER_SIZE
        assert p < REGION_START + REGION_SIZE

    for i in range(0, len(LAYOUTS), 2):
        allocator.dealloc(pointers[i])
    _assert_disjoint(spans()[1::2])

    for i in range(0, len(LAYOUTS), 2):
        size, align = LAYOUTS[i]
        pointers[i] = allocator.alloc(size, align)
    _assert_disjoint(spans())
    _assert_tiles(allocator, REGION_START, REGION_SIZE)


def test_regions_tile_the_free_region(allocator):
    for size, align in LAYOUTS[:10]:
        allocator.alloc(size, align)
    _assert_tiles(allocator, REGION_START, REGION_SIZE)
    assert sum(1 for _, _, allocated in allocator.regions() if allocated) == 10


def test_init_with_mmap_uses_conventional_memory_only():
    descriptors = [
        EfiMemoryDescriptor(EfiMemoryType.CONVENTIONAL_MEMORY, 0, 0, 16),
        EfiMemoryDescriptor(EfiMemoryType.LOADER_DATA, 0x40000, 0, 64),
        EfiMemoryDescriptor(EfiMemoryType.CONVENTIONAL_MEMORY, 0x200000, 0, 1),
        EfiMemoryDescriptor(EfiMemoryType.CONVENTIONAL_MEMORY, 0x100000, 0, 8),
    ]
    allocator = FirstFitAllocator()
    allocator.init_with_mmap(MemoryMapHolder.from_descriptors(descriptors))
    assert list(allocator.regions()) == [
        (0x100000, 8 * 4096, False),
        (4096, 15 * 4096, False),
    ]


def test_region_at_address_zero_skips_first_page():
    allocator = FirstFitAllocator()
    allocator.add_free_region(0, 4 * 4096)
    assert list(allocator.regions()) == [(4096, 3 * 4096, False)]


def test_small_region_is_ignored():
    allocator = FirstFitAllocator()
    allocator.add_free_region(0x1000, 4096)
    assert list(allocator.regions()) == []


def test_alloc_without_memory_fails():
    with pytest.raises(MemoryError):
        FirstFitAllocator().alloc(16, 8)


def test_alloc_of_zero_bytes_fails(allocator):
    with pytest.raises(MemoryError):
        allocator.alloc(0, 8)


def test_alloc_rejects_non_power_of_two_alignment(allocator):
    with pytest.raises(ValueError):
        allocator.alloc(16, 3)


def test_dealloc_unknown_address_fails(allocator):
    with pytest.raises(WasabiError):
        allocator.dealloc(0x12345)


def test_double_dealloc_fails(allocator):
    address = allocator.alloc(64, 8)
    allocator.dealloc(address)
    with pytest.raises(WasabiError):
        allocator.dealloc(address)


def test_dealloc_marks_region_free(allocator):
    address = allocator.alloc(64, 8)
    header = address - HEADER_SIZE
    assert (header, 64 + HEADER_SIZE, True) in list(allocator.regions())
    allocator.dealloc(address)
    assert (header, 64 + HEADER_SIZE, False) in list(allocator.regions())