"""Pixel bitmaps, drawing primitives, glyph rendering and geometry."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .errors import WasabiError
from .mutex import Mutex

GLYPH_WIDTH = 8
GLYPH_HEIGHT = 16

_PIXEL = struct.Struct("<I")
_U32_MASK = 0xFFFFFFFF
_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+\Z")
_OUT_OF_RANGE = "Out of Range"

Glyph = Tuple[str, ...]


class Bitmap:
    """A 32-bit-per-pixel image stored line by line in a byte buffer."""

    bytes_per_pixel = 4

    def __init__(self, width: int, height: int, pixels_per_line: Optional[int] = None, buf=None) -> None:
        if pixels_per_line is None:
            pixels_per_line = width
        if width < 0 or height < 0 or pixels_per_line < 0:
            raise ValueError("bitmap dimensions must not be negative")
        size = pixels_per_line * height * self.bytes_per_pixel
        if buf is None:
            buf = bytearray(size)
        elif len(buf) < size:
            raise ValueError("buffer is too small for the bitmap")
        self.width = width
        self.height = height
        self.pixels_per_line = pixels_per_line
        self.buf = buf

    def is_in_x_range(self, px: int) -> bool:
        return 0 <= px < min(self.width, self.pixels_per_line)

    def is_in_y_range(self, py: int) -> bool:
        return 0 <= py < self.height

    def _offset(self, x: int, y: int) -> int:
        return (y * self.pixels_per_line + x) * self.bytes_per_pixel

    def _put(self, x: int, y: int, color: int) -> None:
        _PIXEL.pack_into(self.buf, self._offset(x, y), color & _U32_MASK)

    def pixel_at(self, x: int, y: int) -> Optional[int]:
        """Color at (x, y), or None outside the bitmap."""
        if not (self.is_in_x_range(x) and self.is_in_y_range(y)):
            return None
        return _PIXEL.unpack_from(self.buf, self._offset(x, y))[0]

    def set_pixel(self, x: int, y: int, color: int) -> None:
        if not (self.is_in_x_range(x) and self.is_in_y_range(y)):
            raise WasabiError(_OUT_OF_RANGE)
        self._put(x, y, color)


def _normalize_glyph(rows: Sequence[str]) -> Glyph:
    padded = list(rows[:GLYPH_HEIGHT])
    padded += [""] * (GLYPH_HEIGHT - len(padded))
    return tuple((row[:GLYPH_WIDTH] + "*" * GLYPH_WIDTH)[:GLYPH_WIDTH] for row in padded)


class Font:
    """256 glyphs of 8x16 cells; a '*' cell is drawn in the foreground."""

    def __init__(self, glyphs: Optional[Mapping[int, Sequence[str]]] = None) -> None:
        blank = _normalize_glyph([])
        table = [blank] * 256
        for index, rows in (glyphs or {}).items():
            if not 0 <= index <= 0xFF:
                raise ValueError("glyph index must fit in a byte")
            table[index] = _normalize_glyph(rows)
        self._glyphs = tuple(table)

    @classmethod
    def from_source(cls, source: str) -> "Font":
        """Parse text where a ``0xNN`` line is followed by 16 glyph rows."""
        lines = source.split("\n")
        glyphs: Dict[int, Sequence[str]] = {}
        for i, line in enumerate(lines):
            if not line.startswith("0x"):
                continue
            digits = line[2:]
            if not _HEX_DIGITS.match(digits):
                continue
            index = int(digits, 16)
            if index > 0xFF:
                continue
            glyphs[index] = lines[i + 1 : i + 1 + GLYPH_HEIGHT]
        return cls(glyphs)

    def glyph(self, c: str) -> Optional[Glyph]:
        """Rows of the glyph for ``c``, or None if ``c`` is beyond one byte."""
        code = ord(c)
        if code > 0xFF:
            return None
        return self._glyphs[code]


def draw_point(buf: Bitmap, color: int, x: int, y: int) -> None:
    buf.set_pixel(x, y, color)


def fill_rect(buf: Bitmap, color: int, px: int, py: int, w: int, h: int) -> None:
    if (
        not buf.is_in_x_range(px)
        or not buf.is_in_y_range(py)
        or not buf.is_in_x_range(px + w - 1)
        or not buf.is_in_y_range(py + h - 1)
    ):
        raise WasabiError(_OUT_OF_RANGE)
    for y in range(py, py + h):
        for x in range(px, px + w):
            buf._put(x, y, color)


def _calc_slope_point(da: int, db: int, ia: int) -> Optional[int]:
    if da < db:
        return None
    if da == 0:
        return 0
    if 0 <= ia <= da:
        return (2 * db * ia + da) // da // 2
    return None


def _sign(v: int) -> int:
    return (v > 0) - (v < 0)


def draw_line(buf: Bitmap, color: int, x0: int, y0: int, x1: int, y1: int) -> None:
    """Draw from (x0, y0) towards (x1, y1); the end point is not drawn."""
    if (
        not buf.is_in_x_range(x0)
        or not buf.is_in_x_range(x1)
        or not buf.is_in_y_range(y0)
        or not buf.is_in_y_range(y1)
    ):
        raise WasabiError(_OUT_OF_RANGE)
    dx, sx = abs(x1 - x0), _sign(x1 - x0)
    dy, sy = abs(y1 - y0), _sign(y1 - y0)
    if dx >= dy:
        for rx in range(dx):
            ry = _calc_slope_point(dx, dy, rx)
            if ry is not None:
                draw_point(buf, color, x0 + rx * sx, y0 + ry * sy)
    else:
        for ry in range(dy):
            rx = _calc_slope_point(dy, dx, ry)
            if rx is not None:
                draw_point(buf, color, x0 + rx * sx, y0 + ry * sy)


def draw_font_fg(buf: Bitmap, x: int, y: int, color: int, c: str, font: Font) -> None:
    """Draw the foreground cells of ``c``, clipping at the bitmap edges."""
    glyph = font.glyph(c)
    if glyph is None:
        return
    for dy, row in enumerate(glyph):
        for dx, cell in enumerate(row):
            if cell != "*":
                continue
            try:
                draw_point(buf, color, x + dx, y + dy)
            except WasabiError:
                pass


def draw_str_fg(buf: Bitmap, x: int, y: int, color: int, s: str, font: Font) -> None:
    for i, c in enumerate(s):
        draw_font_fg(buf, x + i * GLYPH_WIDTH, y, color, c, font)


def draw_test_pattern(buf: Bitmap, font: Font) -> None:
    w = 128
    left = buf.width - w - 1
    colors = (0x000000, 0xFF0000, 0x00FF00, 0x0000FF)
    h = 64
    for i, c in enumerate(colors):
        y = i * h
        fill_rect(buf, c, left, y, h, h)
        fill_rect(buf, ~c & _U32_MASK, left + h, y, h, h)
    points = ((0, 0), (0, w), (w, 0), (w, w))
    for x0, y0 in points:
        for x1, y1 in points:
            try:
                draw_line(buf, 0xFFFFFF, left + x0, y0, left + x1, y1)
            except WasabiError:
                pass
    draw_str_fg(buf, left, h * len(colors), 0x00FF00, "0123456789", font)
    draw_str_fg(buf, left, h * len(colors) + 16, 0x00FF00, "ABCDEF", font)


def draw_button(
    buf: Bitmap, left: int, top: int, w: int, h: int, fgc: int, is_pressed: bool
) -> None:
    fill_rect(buf, fgc, left, top, w, h)
    right = left + w - 1
    bottom = top + h - 1
    light = 0xFFFFFF * (not is_pressed)
    shade = 0xFFFFFF * bool(is_pressed)
    draw_line(buf, light, left, top, right, top)
    draw_line(buf, light, left, top, left, bottom)
    draw_line(buf, shade, right, bottom, right, top)
    draw_line(buf, shade, right, bottom, left, bottom)


class BitmapTextWriter:
    """Writes text onto a locked bitmap, wrapping and scrolling to the top."""

    def __init__(self, buf: Mutex[Bitmap], font: Font) -> None:
        self.buf = buf
        self.font = font
        self.cursor_x = 0
        self.cursor_y = 0

    def _adjust_cursor_pos(self) -> bool:
        with self.buf.lock() as guard:
            w, h = guard.value.width, guard.value.height
        adjusted = False
        if self.cursor_x >= w:
            self.cursor_x = 0
            self.cursor_y += GLYPH_HEIGHT
            adjusted = True
        if self.cursor_y >= h:
            self.cursor_y = 0
            adjusted = True
        return adjusted

    def _clear_line(self, width: int) -> None:
        with self.buf.lock() as guard:
            fill_rect(guard.value, 0x000000, 0, self.cursor_y, width, GLYPH_HEIGHT)

    def write(self, s: str) -> None:
        with self.buf.lock() as guard:
            width = guard.value.width
        for c in s:
            if c == "\n":
                self.cursor_y += GLYPH_HEIGHT
                self.cursor_x = 0
                self._adjust_cursor_pos()
                self._clear_line(width)
                continue
            with self.buf.lock() as guard:
                draw_font_fg(guard.value, self.cursor_x, self.cursor_y, 0xFFFFFF, c, self.font)
            self.cursor_x += GLYPH_WIDTH
            if self._adjust_cursor_pos():
                self._clear_line(width)


@dataclass(frozen=True)
class ScalarRange:
    """A non-empty half-open integer range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("ScalarRange must not be empty")

    @property
    def range(self) -> range:
        return range(self.start, self.end)

    def __contains__(self, v: int) -> bool:
        return self.start <= v < self.end

    def intersection(self, another: "ScalarRange") -> Optional["ScalarRange"]:
        start = max(self.start, another.start)
        end = min(self.end, another.end)
        return ScalarRange(start, end) if start < end else None


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle with non-negative size."""

    x: int
    y: int
    w: int
    h: int

    def __post_init__(self) -> None:
        if self.w < 0 or self.h < 0:
            raise ValueError("Rect size must not be negative")

    def frame_ranges(self) -> Tuple[ScalarRange, ScalarRange]:
        return (
            ScalarRange(self.x, self.x + self.w),
            ScalarRange(self.y, self.y + self.h),
        )

    def intersection(self, another: "Rect") -> Optional["Rect"]:
        rx0, ry0 = self.frame_ranges()
        rx1, ry1 = another.frame_ranges()
        rx = rx0.intersection(rx1)
        ry = ry0.intersection(ry1)
        if rx is None or ry is None:
            return None
        return Rect(rx.start, ry.start, rx.end - rx.start, ry.end - ry.start)

    def contains_point(self, x: int, y: int) -> bool:
        rx, ry = self.frame_ranges()
        return x in rx and y in ry