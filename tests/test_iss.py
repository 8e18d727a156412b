import io
import struct

import pytest

from rv32isim.devices import BusError
from rv32isim.iss import ISS, MEMORY_BASE, ISSConfiguration, main
from rv32isim.loader import ELFError

ECALL = 0x00000073


def addi(rd, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (rd << 7) | 0x13


def sw(rs2, rs1, imm):
    return (
        (((imm >> 5) & 0x7F) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (0x2 << 12)
        | ((imm & 0x1F) << 7)
        | 0x23
    )


def lw(rd, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (0x2 << 12) | (rd << 7) | 0x03


HELLO_PROGRAM = [
    addi(1, 0, 0x400),
    addi(2, 0, ord("H")),
    sw(2, 1, 0),
    addi(2, 0, ord("i")),
    sw(2, 1, 0),
    ECALL,
]


def build_elf(words, vaddr=MEMORY_BASE):
    code = b"".join(word.to_bytes(4, "little") for word in words)
    ident = b"\x7fELF\x01\x01\x01".ljust(16, b"\x00")
    header = struct.pack(
        "<16sHHIIIIIHHHHHH", ident, 2, 0xF3, 1, vaddr, 52, 0, 0, 52, 32, 1, 0, 0, 0
    )
    phdr = struct.pack("<8I", 1, 84, vaddr, vaddr, len(code), len(code), 5, 4)
    return header + phdr + code


@pytest.fixture
def hello_elf(tmp_path):
    path = tmp_path / "hello.elf"
    path.write_bytes(build_elf(HELLO_PROGRAM))
    return path


def test_run_writes_to_uart(hello_elf):
    stream = io.StringIO()
    iss = ISS(ISSConfiguration(hello_elf, 4096), uart_stream=stream)
    iss.run()
    assert stream.getvalue() == "Hi"


def test_entry_point_and_counters(hello_elf):
    iss = ISS(ISSConfiguration(hello_elf, 4096), uart_stream=io.StringIO())
    assert iss.cpu.pc == MEMORY_BASE
    iss.run()
    assert iss.cpu.instruction_count == len(HELLO_PROGRAM)
    assert iss.timer.mtime == len(HELLO_PROGRAM)


def test_dump_memory_shows_loaded_code(hello_elf, capsys):
    iss = ISS(ISSConfiguration(hello_elf, 4096), uart_stream=io.StringIO())
    capsys.readouterr()
    iss.dump_memory(MEMORY_BASE, 8)
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        f"0x{MEMORY_BASE:x}: 0x{HELLO_PROGRAM[0]:x}",
        f"0x{MEMORY_BASE + 4:x}: 0x{HELLO_PROGRAM[1]:x}",
    ]


def test_dump_cpu_info(hello_elf, capsys):
    iss = ISS(ISSConfiguration(hello_elf, 4096), uart_stream=io.StringIO())
    iss.run()
    iss.dump_cpu_info(True)
    out = capsys.readouterr().out
    assert "Base: Hexadecimal" in out
    assert f"Total instructions executed: {len(HELLO_PROGRAM)}" in out


def test_devices_listed_on_construction(hello_elf, capsys):
    ISS(ISSConfiguration(hello_elf, 4096), uart_stream=io.StringIO())
    out = capsys.readouterr().out
    assert "Attached devices:" in out
    assert "Device at address range [0x400, 0x4ff]" in out


def test_unmapped_access_raises(tmp_path):
    path = tmp_path / "bad.elf"
    path.write_bytes(build_elf([addi(1, 0, 0x10), lw(2, 1, 0), ECALL]))
    iss = ISS(ISSConfiguration(path, 4096), uart_stream=io.StringIO())
    with pytest.raises(BusError):
        iss.run()


def test_missing_elf_raises(tmp_path):
    with pytest.raises(ELFError):
        ISS(ISSConfiguration(tmp_path / "missing.elf", 4096))


def test_main_runs_program(hello_elf, capsys):
    assert main(["-M", "4K", str(hello_elf)]) == 0
    out = capsys.readouterr().out
    assert "Starting simulation..." in out
    assert "Hi" in out
    assert f"Total instructions executed: {len(HELLO_PROGRAM)}" in out


def test_main_without_arguments_fails(capsys):
    assert main([]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_trailing_flag_is_taken_as_path(hello_elf, capsys):
    assert main([str(hello_elf), "-M"]) == 1
    assert "Error:" in capsys.readouterr().err