import pytest

from rv32isim.cpu import RV32ICPU
from rv32isim.csr import CsrFile
from rv32isim.decode import sign_extend
from rv32isim.devices import Memory, Timer

MASK = 0xFFFFFFFF
ECALL = 0x00000073
MRET = 0x30200073


def i_type(opcode, rd, funct3, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | opcode


def addi(rd, rs1, imm):
    return i_type(0x13, rd, 0x0, rs1, imm)


def r_type(funct7, rs2, rs1, funct3, rd):
    return (funct7 << 25) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | 0x33


def s_type(funct3, rs2, rs1, imm):
    return (
        (((imm >> 5) & 0x7F) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (funct3 << 12)
        | ((imm & 0x1F) << 7)
        | 0x23
    )


def b_type(funct3, rs1, rs2, imm):
    return (
        (((imm >> 12) & 1) << 31)
        | (((imm >> 5) & 0x3F) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (funct3 << 12)
        | (((imm >> 1) & 0xF) << 8)
        | (((imm >> 11) & 1) << 7)
        | 0x63
    )


def u_type(opcode, rd, imm):
    return (imm & 0xFFFFF000) | (rd << 7) | opcode


def j_type(rd, imm):
    return (
        (((imm >> 20) & 1) << 31)
        | (((imm >> 1) & 0x3FF) << 21)
        | (((imm >> 11) & 1) << 20)
        | (((imm >> 12) & 0xFF) << 12)
        | (rd << 7)
        | 0x6F
    )


def csr_op(funct3, rd, rs1, csr):
    return i_type(0x73, rd, funct3, rs1, csr)


def make_cpu(words, timer=None):
    memory = Memory(0, 0x1000)
    for index, word in enumerate(words):
        memory.write(index * 4, word, 0xF)
    cpu = RV32ICPU()
    cpu.bind_device(memory)
    if timer is not None:
        cpu.bind_timer(timer)
    return cpu, memory


def run(cpu, limit=200):
    for _ in range(limit):
        if not cpu.tick():
            return
    raise AssertionError("program did not stop")


def test_add_and_sub():
    cpu, _ = make_cpu(
        [
            addi(1, 0, 5),
            addi(2, 0, 7),
            r_type(0x00, 2, 1, 0x0, 3),
            r_type(0x20, 2, 1, 0x0, 4),
            ECALL,
        ]
    )
    run(cpu)
    assert cpu.registers[3] == 5 + 7
    assert cpu.registers[4] == (5 - 7) & MASK


def test_x0_stays_zero():
    cpu, _ = make_cpu([addi(0, 0, 5), ECALL])
    run(cpu)
    assert cpu.registers[0] == 0


def test_signed_and_unsigned_compare():
    cpu, _ = make_cpu(
        [
            addi(1, 0, -1),
            addi(2, 0, 1),
            r_type(0x00, 2, 1, 0x2, 3),
            r_type(0x00, 2, 1, 0x3, 4),
            ECALL,
        ]
    )
    run(cpu)
    assert (cpu.registers[3], cpu.registers[4]) == (1, 0)


def test_register_shift_uses_rs2_field_as_amount():
    cpu, _ = make_cpu([addi(1, 0, 3), r_type(0x00, 2, 1, 0x1, 3), ECALL])
    run(cpu)
    assert cpu.registers[3] == 3 << 2


def test_srai_is_arithmetic_and_srli_logical():
    srai = i_type(0x13, 2, 0x5, 1, (0x20 << 5) | 2)
    srli = i_type(0x13, 3, 0x5, 1, 2)
    cpu, _ = make_cpu([addi(1, 0, -16), srai, srli, ECALL])
    run(cpu)
    assert cpu.registers[2] == (-16 >> 2) & MASK
    assert cpu.registers[3] == ((-16) & MASK) >> 2


def test_lui_and_auipc():
    cpu, _ = make_cpu([u_type(0x37, 1, 0x12345000), u_type(0x17, 2, 0x1000), ECALL])
    run(cpu)
    assert cpu.registers[1] == 0x12345000
    assert cpu.registers[2] == 4 + 0x1000


def test_store_and_load_round_trip():
    cpu, memory = make_cpu(
        [
            addi(1, 0, 0x200),
            u_type(0x37, 2, 0x12345000),
            addi(2, 2, 0x678),
            s_type(0x2, 2, 1, 0),
            i_type(0x03, 3, 0x2, 1, 0),
            ECALL,
        ]
    )
    run(cpu)
    assert cpu.registers[3] == 0x12345678
    assert memory.read(0x200) == 0x12345678


def test_byte_loads_sign_and_zero_extend():
    cpu, _ = make_cpu(
        [
            addi(1, 0, 0x200),
            addi(2, 0, 0x80),
            s_type(0x0, 2, 1, 0),
            i_type(0x03, 3, 0x0, 1, 0),
            i_type(0x03, 4, 0x4, 1, 0),
            ECALL,
        ]
    )
    run(cpu)
    assert cpu.registers[3] == sign_extend(0x80, 8)
    assert cpu.registers[4] == 0x80


def test_halfword_store_keeps_other_bytes():
    cpu, memory = make_cpu(
        [addi(1, 0, 0x200), addi(2, 0, -1), s_type(0x1, 2, 1, 0), ECALL]
    )
    memory.write(0x200, 0x55667788, 0xF)
    run(cpu)
    assert memory.read(0x200) == 0x5566FFFF


def test_branches_taken_and_not_taken():
    cpu, _ = make_cpu(
        [
            addi(1, 0, 1),
            b_type(0x0, 1, 0, 8),
            addi(2, 0, 7),
            b_type(0x0, 0, 0, 8),
            addi(3, 0, 9),
            ECALL,
        ]
    )
    run(cpu)
    assert cpu.registers[2] == 7
    assert cpu.registers[3] == 0


def test_jal_links_and_jumps():
    cpu, _ = make_cpu([j_type(1, 12)])
    assert cpu.tick() is True
    assert cpu.pc == 12
    assert cpu.registers[1] == 4


def test_jalr_clears_low_bits():
    cpu, _ = make_cpu([addi(5, 0, 0x103), i_type(0x67, 1, 0x0, 5, 0)])
    cpu.tick()
    cpu.tick()
    assert cpu.pc == 0x100
    assert cpu.registers[1] == 8


def test_ecall_stops_and_counts():
    cpu, _ = make_cpu([ECALL])
    assert cpu.tick() is False
    assert cpu.instruction_count == 1


def test_unknown_instruction_stops():
    cpu, _ = make_cpu([0xFFFFFFFF])
    assert cpu.tick() is False


def test_csr_instructions():
    cpu, _ = make_cpu(
        [
            addi(1, 0, 0x100),
            csr_op(0x1, 2, 1, CsrFile.MTVEC),
            csr_op(0x5, 3, 8, CsrFile.MTVEC),
            csr_op(0x6, 0, 8, CsrFile.MSTATUS),
            ECALL,
        ]
    )
    run(cpu)
    assert cpu.registers[2] == 0
    assert cpu.registers[3] == 0x100
    assert cpu.csr_file.read(CsrFile.MTVEC) == 8
    assert cpu.csr_file.machine_interrupts_enabled()


def test_csrrci_clears_bits():
    cpu, _ = make_cpu([csr_op(0x7, 4, 8, CsrFile.MSTATUS), ECALL])
    cpu.csr_file.write(CsrFile.MSTATUS, CsrFile.MSTATUS_MIE)
    run(cpu)
    assert cpu.registers[4] == CsrFile.MSTATUS_MIE
    assert not cpu.csr_file.machine_interrupts_enabled()


def test_unsupported_csr_stops():
    cpu, _ = make_cpu([csr_op(0x1, 1, 0, 0x123)])
    assert cpu.tick() is False


def _pending_timer():
    timer = Timer()
    timer.write(Timer.MTIMECMP_OFFSET, 0, 0xF)
    timer.write(Timer.MTIMECMP_OFFSET + 4, 0, 0xF)
    return timer


def test_timer_interrupt_enters_trap_and_mret_returns():
    words = [0] * 0x41
    words[0x40] = MRET
    cpu, _ = make_cpu(words, timer=_pending_timer())
    cpu.csr_file.write(CsrFile.MSTATUS, CsrFile.MSTATUS_MIE)
    cpu.csr_file.write(CsrFile.MIE, CsrFile.MACHINE_TIMER_INTERRUPT_BIT)
    cpu.csr_file.write(CsrFile.MTVEC, 0x100)
    cpu.pc = 0x20

    assert cpu.tick() is True
    assert cpu.pc == 0x100
    assert cpu.instruction_count == 0
    assert cpu.csr_file.read(CsrFile.MEPC) == 0x20
    assert cpu.csr_file.read(CsrFile.MCAUSE) == CsrFile.MACHINE_TIMER_INTERRUPT_CAUSE
    assert cpu.csr_file.read(CsrFile.MSTATUS) == CsrFile.MSTATUS_MPIE

    assert cpu.tick() is True
    assert cpu.pc == 0x20
    assert cpu.csr_file.machine_interrupts_enabled()


def test_disabled_interrupt_only_marks_pending():
    cpu, _ = make_cpu([addi(1, 0, 1), ECALL], timer=_pending_timer())
    assert cpu.tick() is True
    assert cpu.pc == 4
    assert cpu.csr_file.read(CsrFile.MIP) == CsrFile.MACHINE_TIMER_INTERRUPT_BIT


def test_tick_without_device_raises():
    cpu = RV32ICPU()
    with pytest.raises(RuntimeError):
        cpu.tick()


def test_format_registers_hex_and_decimal():
    cpu = RV32ICPU()
    cpu.registers[5] = 0xDEADBEEF
    hex_text = cpu.format_registers(True)
    dec_text = cpu.format_registers(False)
    assert "x0 : 0x00000000\t" in hex_text
    assert "x5 : 0xDEADBEEF" in hex_text
    assert "Base: Hexadecimal" in hex_text
    assert str(0xDEADBEEF) in dec_text
    assert "Base: Decimal" in dec_text
    assert "x31: " in dec_text


def test_dump_functions_print(capsys):
    cpu = RV32ICPU()
    cpu.dump_registers(True)
    cpu.dump_instruction_count()
    out = capsys.readouterr().out
    assert "|                Register state                |" in out
    assert "Total instructions executed: 0" in out