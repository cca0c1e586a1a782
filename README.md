# wasabi

Building blocks of a small hobby operating system, written as plain Python
that works on in-memory data: byte buffers stand in for physical memory and
register blocks, and a pixel buffer stands in for the screen. Everything runs
on an ordinary host.

Errors that the system reports are raised as `wasabi.errors.WasabiError`;
its `reason` attribute holds the short message.

## Modules

- `wasabi.bits`: `extract_bits(value, shift, width)` reads a bit field of a
  64-bit value; `extract_bits_from_le_bytes(data, shift, width)` reads one out
  of little-endian bytes and returns `None` for a zero width or a field past
  the end of the data.
- `wasabi.ranges`: `map_value_in_range_inclusive(from_range, to_range, v)`
  rescales `v` between two inclusive `(start, end)` ranges, rounding toward
  zero; a `v` outside `from_range` raises `WasabiError`.
- `wasabi.mutex`: `Mutex` with `try_lock()`, `lock()` and `under_locked(f)`.
  `lock()` tries a bounded number of times and then raises `WasabiError`
  instead of waiting. Both return a `MutexGuard`, a context manager whose
  `value` reads and replaces the protected data until `release()`.
- `wasabi.graphics`: `Bitmap` (32 bits per pixel, `pixel_at`, `set_pixel`),
  `draw_point`, `fill_rect`, `draw_line`, `draw_button`, `draw_test_pattern`,
  glyph drawing with `draw_font_fg` / `draw_str_fg` and a `Font` (8x16 glyphs;
  `Font.from_source` parses text where a `0xNN` line is followed by 16 rows and
  `*` marks a foreground cell), a wrapping `BitmapTextWriter`, and the
  geometry types `ScalarRange` (non-empty, half-open) and `Rect`.
- `wasabi.uefi`: `EfiGuid`, `EfiMemoryType`, `EfiMemoryDescriptor` (packing to
  and from bytes), `MemoryMapHolder` (a packed memory map, iterable as
  descriptors), `VramBufferInfo`, and `set_efi_memory_map` / `efi_memory_map`
  to record the map in use.
- `wasabi.acpi`: reads the RSDP (`AcpiRsdp`), the XSDT (`Xsdt`), the HPET table
  (`AcpiHpetDescriptor`) and the MCFG table (`AcpiMcfgDescriptor`, with its
  `EcamEntry` list) from a memory image given as bytes and an address.
- `wasabi.hpet`: `HpetRegisters` over a 0x500-byte buffer, `Hpet` which
  quiesces the timers, resets the main counter and enables it, and
  `set_global_hpet` / `clear_global_hpet` / `global_timestamp()` (a
  `timedelta`, zero while no HPET is set).
- `wasabi.allocator`: `round_up_to_nearest_pow2(v)` and `FirstFitAllocator`,
  which hands out addresses from free regions (`add_free_region`, or
  `init_with_mmap` for the conventional memory of a memory map). `alloc(size,
  align)` raises `MemoryError` when no region fits; `dealloc(address)` marks
  the region free without merging it; `regions()` lists every region.
- `wasabi.executor`: a cooperative executor for coroutines: `Task`,
  `Executor` (`spawn`, `run` until the queue is empty), `block_on`,
  `yield_execution`, `sleep` (driven by `global_timestamp()`), `spawn_global`
  and `start_global_executor`.
- `wasabi.printing`: `global_print`, `info` / `warn` / `error` log lines
  tagged with file and line, `hexdump_lines` / `hexdump_bytes`, and
  `set_output` to send everything to another text stream.
- `wasabi.gui`: the shared frame buffer: `set_global_vram`, `global_vram`,
  `global_vram_resolutions`.
- `wasabi.input`: `MouseButtonState`, `PointerPosition`, `MouseEvent`,
  `InputManager` (event queue plus current state) and `input_task`.
- `wasabi.tablet`: `parse_hid_report_descriptor` turns a HID report
  descriptor into `UsbHidReportInputItem` fields; `TabletReportDecoder`
  turns absolute-pointer reports into `MouseEvent`s for a given screen size,
  skipping repeated reports; `set_debug_mouse` logs every decoded report.
- `wasabi.keyboard`: `KeyEvent.from_usb_key_id` and `to_char`, and
  `KeyboardReportTracker.feed`, which yields key-down events from successive
  boot-protocol reports.
- `wasabi.cui`: `Console` collects typed keys and runs the line on Enter.
  `run_cmd` understands `time`, `debug mouse on|off`, `show mmap`,
  `demo mouse` and `demo button`; other commands raise `WasabiError`.
- `wasabi.pci`: `BusDeviceFunction`, `VendorDeviceId`, `BarMem64` and `Pci`,
  which reads and writes configuration registers in an ECAM window held in a
  buffer, probes for connected functions and sizes BAR0. Functions beyond the
  end of the buffer read as all ones, like absent ones.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from wasabi.bits import extract_bits
from wasabi.ranges import map_value_in_range_inclusive
from wasabi.allocator import FirstFitAllocator, round_up_to_nearest_pow2

extract_bits(0x123, 4, 8)                              # 0x12
map_value_in_range_inclusive((0, 3), (0, 270), 1)      # 90
round_up_to_nearest_pow2(5)                            # 8

allocator = FirstFitAllocator()
allocator.add_free_region(0x10000, 0x10000)
address = allocator.alloc(100, 64)                     # a multiple of 64
allocator.dealloc(address)
```

```python
from wasabi.graphics import Rect

r = Rect(1, 2, 3, 4)
r.contains_point(2, 3)                                 # True
```

```python
from wasabi.cui import run_cmd
from wasabi.tablet import is_in_debug_mouse

run_cmd("debug mouse on")
is_in_debug_mouse()                                    # True
```

## What it does not do

- There is no command-line program; the console commands run only through
  `Console` or `run_cmd`.
- Nothing touches real hardware or firmware: there is no booting, no calls
  into UEFI boot services, no paging, no interrupts, no serial port and no
  I/O ports. Memory, registers and the screen are buffers you supply.
- There is no USB host controller driver. Keyboard and tablet reports must be
  handed to `KeyboardReportTracker` and `TabletReportDecoder` by the caller,
  and `Pci.probe_devices` only lists functions; it attaches no drivers.