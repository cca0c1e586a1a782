"""Bit field extraction helpers."""

from __future__ import annotations

from typing import Optional

_U64_MASK = (1 << 64) - 1


def extract_bits(value: int, shift: int, width: int) -> int:
    """Return ``width`` bits of ``value`` starting at bit ``shift``.

    The value is treated as an unsigned 64-bit integer and at most 63 bits
    are masked in; shifting by 64 or more yields 0.
    """
    mask = (1 << min(63, width)) - 1
    value &= _U64_MASK
    shifted = value >> shift if shift < 64 else 0
    return shifted & mask


def extract_bits_from_le_bytes(data: bytes, shift: int, width: int) -> Optional[int]:
    """Read a bit field out of a little-endian byte sequence.

    Returns None when ``width`` is zero or the field runs past the data.
    """
    if width == 0:
        return None
    start = shift // 8
    end = (shift + width + 7) // 8
    if end > len(data):
        return None
    bit_shift = shift - start * 8
    value = 0
    for i, byte in enumerate(data[start:end]):
        value |= ((byte << (i * 8)) >> bit_shift) & _U64_MASK
    return extract_bits(value, 0, width)