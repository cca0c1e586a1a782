import struct

import pytest

from wasabi.acpi import (
    AcpiHpetDescriptor,
    AcpiMcfgDescriptor,
    AcpiRsdp,
    GenericAddress,
    SystemDescriptionTableHeader,
    Xsdt,
)
from wasabi.errors import WasabiError

RSDP = 0x0
XSDT = 0x100
HPET = 0x200
MCFG = 0x300
REGS = 0x1000
ECAM0 = 0xE0000000
ECAM1 = 0xF0000000


def _header(sig, length):
    return sig + struct.pack("<I", length) + bytes(28)


def _put(mem, addr, data):
    mem[addr : addr + len(data)] = data


def build_memory(space_id=0, tables=(HPET, MCFG)):
    mem = bytearray(0x2000)
    _put(mem, RSDP, struct.pack("<8sB6sBIIQ", b"RSD PTR ", 0, b"OEMID ", 2, 0, 36, XSDT))
    _put(mem, XSDT, _header(b"XSDT", 36 + 8 * len(tables)))
    _put(mem, XSDT + 36, b"".join(struct.pack("<Q", t) for t in tables))
    hpet = (
        _header(b"HPET", 56)
        + struct.pack("<I", 0)
        + struct.pack("<B3xQ", space_id, REGS)
        + struct.pack("<I", 0)
    )
    _put(mem, HPET, hpet)
    mcfg = (
        _header(b"MCFG", 44 + 32)
        + bytes(8)
        + struct.pack("<QHBB4x", ECAM0, 0, 0, 255)
        + struct.pack("<QHBB4x", ECAM1, 1, 0, 15)
    )
    _put(mem, MCFG, mcfg)
    return mem


def test_header_fields():
    mem = build_memory()
    header = SystemDescriptionTableHeader.from_memory(mem, HPET)
    assert header.signature == b"HPET"
    assert header.length == 56
    assert header.address == HPET


def test_header_out_of_memory_raises():
    mem = build_memory()
    with pytest.raises(WasabiError):
        SystemDescriptionTableHeader.from_memory(mem, len(mem) - 10)


def test_rsdp_fields():
    rsdp = AcpiRsdp.from_memory(build_memory(), RSDP)
    assert rsdp.signature == b"RSD PTR "
    assert rsdp.revision == 2
    assert rsdp.xsdt_address == XSDT


def test_xsdt_lists_tables_in_order():
    xsdt = Xsdt.from_memory(build_memory(), XSDT)
    assert xsdt.num_of_entries == 2
    assert [e.signature for e in xsdt] == [b"HPET", b"MCFG"]


def test_find_table_missing():
    xsdt = Xsdt.from_memory(build_memory(), XSDT)
    assert xsdt.find_table(b"APIC") is None
    assert xsdt.find_table(b"MCFG").address == MCFG


def test_hpet_registers_view_memory():
    mem = build_memory()
    _put(mem, REGS, struct.pack("<Q", 0x1234_5678_0000_0001))
    regs = AcpiRsdp.from_memory(mem, RSDP).hpet().base_address()
    assert regs.capabilities_and_id == 0x1234_5678_0000_0001
    regs.capabilities_and_id = 42
    assert struct.unpack_from("<Q", mem, REGS)[0] == 42


def test_hpet_not_in_memory_space_raises():
    mem = build_memory(space_id=1)
    hpet = AcpiRsdp.from_memory(mem, RSDP).hpet()
    with pytest.raises(WasabiError):
        hpet.base_address()


def test_generic_address():
    assert GenericAddress(0, REGS).address_in_memory_space() == REGS
    with pytest.raises(WasabiError):
        GenericAddress(1, REGS).address_in_memory_space()


def test_missing_hpet_table():
    rsdp = AcpiRsdp.from_memory(build_memory(tables=(MCFG,)), RSDP)
    assert rsdp.hpet() is None
    assert rsdp.mcfg() is not None
    assert rsdp.mcfg().num_of_entries() == 2


def test_wrong_signature_raises():
    mem = build_memory()
    with pytest.raises(WasabiError):
        AcpiHpetDescriptor.from_memory(mem, MCFG)
    with pytest.raises(WasabiError):
        AcpiMcfgDescriptor.from_memory(mem, HPET)


def test_mcfg_entries():
    mcfg = AcpiRsdp.from_memory(build_memory(), RSDP).mcfg()
    assert mcfg.num_of_entries() == 2
    first = mcfg.entry(0)
    assert first.base_address == ECAM0
    assert (first.start_pci_bus, first.end_pci_bus) == (0, 255)
    assert mcfg.entry(1).pci_segment_group == 1
    assert mcfg.entry(2) is None
    assert mcfg.entry(-1) is None


def test_ecam_entry_display():
    mcfg = AcpiMcfgDescriptor.from_memory(build_memory(), MCFG)
    assert str(mcfg.entry(1)) == "ECAM: Bus [0..=15] is mapped at 0xF0000000"