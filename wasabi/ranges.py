"""Linear mapping between inclusive integer ranges."""

from __future__ import annotations

from typing import Tuple

from .errors import WasabiError

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def _div_toward_zero(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def map_value_in_range_inclusive(
    from_range: Tuple[int, int], to_range: Tuple[int, int], v: int
) -> int:
    """Map ``v`` from the inclusive ``from_range`` onto ``to_range``.

    Both ranges are ``(start, end)`` pairs with both ends included.
    """
    from_start, from_end = from_range
    to_start, to_end = to_range
    if not from_start <= v <= from_end:
        raise WasabiError("v is not in range from")
    from_left = v - from_start
    from_width = from_end - from_start
    to_width = to_end - to_start
    if from_width == 0:
        return to_start
    to_left = _div_toward_zero(from_left * to_width, from_width)
    if not _I64_MIN <= to_left <= _I64_MAX:
        raise WasabiError("failed to convert to_left to the result type")
    return to_start + to_left