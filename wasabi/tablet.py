"""HID report descriptor parsing and absolute pointer (tablet) decoding."""

from __future__ import annotations

import enum
import itertools
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, List, Optional, Sequence, Tuple

from .bits import extract_bits, extract_bits_from_le_bytes
from .errors import WasabiError
from .input import MouseButtonState, MouseEvent, PointerPosition
from .printing import info, warn
from .ranges import map_value_in_range_inclusive

_PAGE_GENERIC_DESKTOP = 0x01
_PAGE_BUTTON = 0x09


class _ItemType(enum.IntEnum):
    MAIN = 0
    GLOBAL = 1
    LOCAL = 2
    RESERVED = 3


@dataclass(frozen=True)
class UsbHidUsagePage:
    """A HID usage page identifier."""

    page: int

    @property
    def is_generic_desktop(self) -> bool:
        return self.page == _PAGE_GENERIC_DESKTOP

    @property
    def is_button(self) -> bool:
        return self.page == _PAGE_BUTTON

    def __str__(self) -> str:
        if self.is_generic_desktop:
            return "GenericDesktop"
        if self.is_button:
            return "Button"
        return f"UnknownUsagePage({self.page})"


class UsageKind(enum.Enum):
    POINTER = "Pointer"
    MOUSE = "Mouse"
    X = "X"
    Y = "Y"
    WHEEL = "Wheel"
    BUTTON = "Button"
    UNKNOWN = "UnknownUsage"
    CONSTANT = "Constant"


@dataclass(frozen=True)
class UsbHidUsage:
    """What a report field means; buttons and unknown usages carry a number."""

    kind: UsageKind
    index: int = 0

    @classmethod
    def button(cls, index: int) -> "UsbHidUsage":
        return cls(UsageKind.BUTTON, index)

    @classmethod
    def unknown(cls, index: int) -> "UsbHidUsage":
        return cls(UsageKind.UNKNOWN, index)

    def __str__(self) -> str:
        if self.kind in (UsageKind.BUTTON, UsageKind.UNKNOWN):
            return f"{self.kind.value}({self.index})"
        return self.kind.value


_GENERIC_DESKTOP_USAGES = {
    0x01: UsageKind.POINTER,
    0x02: UsageKind.MOUSE,
    0x30: UsageKind.X,
    0x31: UsageKind.Y,
    0x38: UsageKind.WHEEL,
}


@dataclass(frozen=True)
class UsbHidReportInputItem:
    """One field of an input report."""

    usage: UsbHidUsage
    bit_size: int
    is_array: bool
    is_absolute: bool
    bit_offset: int
    logical_min: int
    logical_max: int

    def value_from_report(self, report: bytes) -> Optional[int]:
        """The field's value, or None when the report is too short."""
        v = extract_bits_from_le_bytes(report, self.bit_offset, self.bit_size)
        if v is None:
            return None
        if self.bit_size >= 2 and extract_bits(v, self.bit_size - 1, 1) == 1:
            # The top bit is masked off rather than sign-extended.
            return extract_bits(v, 0, self.bit_size - 1)
        return v

    def mapped_range_from_report(self, report: bytes, to_range: Tuple[int, int]) -> int:
        """The field's value scaled from its logical range onto ``to_range``."""
        v = self.value_from_report(report)
        if v is None:
            raise WasabiError("value was empty")
        return map_value_in_range_inclusive((self.logical_min, self.logical_max), to_range, v)

    def bool_value_from_report(self, report: bytes) -> Optional[bool]:
        v = self.value_from_report(report)
        return None if v is None else v != 0


def _usage_for(usage_page: Optional[UsbHidUsagePage], data_value: int) -> UsbHidUsage:
    if usage_page is not None and usage_page.is_generic_desktop:
        kind = _GENERIC_DESKTOP_USAGES.get(data_value)
        if kind is not None:
            return UsbHidUsage(kind)
    return UsbHidUsage.unknown(data_value)


def parse_hid_report_descriptor(report: bytes) -> List[UsbHidReportInputItem]:
    """Collect the input report fields described by a HID report descriptor."""
    it = iter(bytes(report))
    items: List[UsbHidReportInputItem] = []
    usage_queue: Deque[UsbHidUsage] = deque()
    usage_page: Optional[UsbHidUsagePage] = None
    usage_min: Optional[int] = None
    usage_max: Optional[int] = None
    report_size = 0
    report_count = 0
    bit_offset = 0
    logical_min = 0
    logical_max = 0
    for prefix in it:
        b_size = prefix & 0b11
        if b_size == 0b11:
            b_size = 4
        b_type = _ItemType((prefix >> 2) & 0b11)
        if b_type is _ItemType.RESERVED:
            warn("b_type == Reserved is not implemented yet!")
            break
        b_tag = prefix >> 4
        data = bytes(itertools.islice(it, b_size))
        data_value = int.from_bytes(data, "little")
        match (b_type, b_tag):
            case (_ItemType.MAIN, 0b1000):
                info(f"M: Input attr {data_value:#b}")
                if usage_page is not None:
                    is_constant = extract_bits(data_value, 0, 1) == 1
                    is_array = extract_bits(data_value, 1, 1) == 1
                    is_absolute = extract_bits(data_value, 2, 1) == 0
                    for i in range(report_count):
                        if usage_queue:
                            usage = usage_queue.popleft()
                        elif usage_page.is_button and usage_min is not None and usage_max is not None:
                            btn_idx = usage_min + i
                            usage = (
                                UsbHidUsage.button(btn_idx)
                                if btn_idx <= usage_max
                                else UsbHidUsage.unknown(btn_idx)
                            )
                        elif is_constant:
                            usage = UsbHidUsage(UsageKind.CONSTANT)
                        else:
                            usage = UsbHidUsage.unknown(0)
                        items.append(
                            UsbHidReportInputItem(
                                usage=usage,
                                bit_size=report_size,
                                is_array=is_array,
                                is_absolute=is_absolute,
                                bit_offset=bit_offset,
                                logical_min=logical_min,
                                logical_max=logical_max,
                            )
                        )
                        bit_offset += report_size
            case (_ItemType.MAIN, 0b1010):
                collection_type = {0: "Physical", 1: "Application"}.get(data_value, str(data_value))
                info(f"M: Collection {collection_type} {{")
            case (_ItemType.MAIN, 0b1100):
                info("M: } Collection")
            case (_ItemType.GLOBAL, 0b0000):
                usage_page = UsbHidUsagePage(data_value)
                info(f"G: Usage Page: {usage_page}")
            case (_ItemType.GLOBAL, 0b0001):
                info(f"G: Logical Minimum: {data_value:#X}")
                logical_min = data_value
            case (_ItemType.GLOBAL, 0b0010):
                info(f"G: Logical Maximum: {data_value:#X}")
                logical_max = data_value
            case (_ItemType.GLOBAL, 0b0111):
                info(f"G: Report Size: {data_value} bits")
                report_size = data_value
            case (_ItemType.GLOBAL, 0b1001):
                info(f"G: Report Count: {data_value} times")
                report_count = data_value
            case (_ItemType.LOCAL, 0):
                usage = _usage_for(usage_page, data_value)
                usage_queue.append(usage)
                info(f"L: Usage: {usage} (in usage page {usage_page})")
            case (_ItemType.LOCAL, 1):
                usage_min = data_value
            case (_ItemType.LOCAL, 2):
                usage_max = data_value
            case _:
                hex_data = ",".join(f"{b:#04X}" for b in data)
                info(f"{prefix:#04X} (type = {b_type.name:6}, tag = {b_tag:2}): [{hex_data}]")
        if b_type is _ItemType.MAIN:
            usage_queue.clear()
            usage_min = None
            usage_max = None
    return items


def _find(
    items: Sequence[UsbHidReportInputItem],
    predicate: Callable[[UsbHidReportInputItem], bool],
    missing: str,
) -> UsbHidReportInputItem:
    found = next((e for e in items if predicate(e)), None)
    if found is None:
        raise WasabiError(missing)
    return found


class TabletReportDecoder:
    """Turns absolute-pointer input reports into mouse events."""

    def __init__(self, items: Iterable[UsbHidReportInputItem]) -> None:
        items = list(items)
        if not items:
            raise WasabiError("report size is zero")
        last = items[-1]
        self.report_size_in_bytes = (last.bit_offset + last.bit_size + 7) // 8
        self._prev_report = bytes(self.report_size_in_bytes)
        self.button_l = _find(items, lambda e: e.usage == UsbHidUsage.button(1), "Button(1) not found")
        self.button_r = _find(items, lambda e: e.usage == UsbHidUsage.button(2), "Button(2) not found")
        self.button_c = _find(items, lambda e: e.usage == UsbHidUsage.button(3), "Button(3) not found")
        self.abs_x = _find(
            items,
            lambda e: e.usage.kind is UsageKind.X and e.is_absolute,
            "Absolute pointer X not found",
        )
        self.abs_y = _find(
            items,
            lambda e: e.usage.kind is UsageKind.Y and e.is_absolute,
            "Absolute pointer Y not found",
        )

    @staticmethod
    def _mapped_or_zero(item: UsbHidReportInputItem, report: bytes, to_range: Tuple[int, int]) -> int:
        try:
            return item.mapped_range_from_report(report, to_range)
        except WasabiError:
            return 0

    def decode(self, report: bytes, width: int, height: int) -> Optional[MouseEvent]:
        """The event for ``report`` on a screen of the given size.

        Returns None when the report equals the previous one.
        """
        report = bytes(report)
        if report == self._prev_report:
            return None
        l = bool(self.button_l.bool_value_from_report(report))  # noqa: E741
        r = bool(self.button_r.bool_value_from_report(report))
        c = bool(self.button_c.bool_value_from_report(report))
        ax = self._mapped_or_zero(self.abs_x, report, (0, width - 1))
        ay = self._mapped_or_zero(self.abs_y, report, (0, height - 1))
        if is_in_debug_mouse():
            info(f"{list(report)}: ({l}, {c}, {r}, {ax}, {ay})")
        self._prev_report = report
        return MouseEvent(MouseButtonState.from_lrc(l, r, c), PointerPosition(ax, ay))


_debug_mouse = False


def is_in_debug_mouse() -> bool:
    return _debug_mouse


def set_debug_mouse(choice: bool) -> None:
    """Turn logging of every decoded tablet report on or off."""
    global _debug_mouse
    _debug_mouse = bool(choice)