"""The RV32I processor core: fetch, decode, execute and machine interrupts."""

from __future__ import annotations

import sys
from typing import Callable, TextIO

from rv32isim.csr import CsrFile
from rv32isim.decode import Instruction, Operation, decode_instruction, sign_extend
from rv32isim.devices import Device, Timer

_MASK32 = 0xFFFFFFFF
_RULE = "=" * 48


def _signed(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


_BinaryOp = Callable[[int, int], int]

_REGISTER_OPS: dict[Operation, _BinaryOp] = {
    Operation.ADD: lambda a, b: a + b,
    Operation.SUB: lambda a, b: a - b,
    Operation.SLT: lambda a, b: int(_signed(a) < _signed(b)),
    Operation.SLTU: lambda a, b: int(a < b),
    Operation.XOR: lambda a, b: a ^ b,
    Operation.OR: lambda a, b: a | b,
    Operation.AND: lambda a, b: a & b,
}

_IMMEDIATE_OPS: dict[Operation, _BinaryOp] = {
    Operation.ADDI: lambda a, imm: a + imm,
    Operation.SLTI: lambda a, imm: int(_signed(a) < _signed(imm)),
    Operation.SLTIU: lambda a, imm: int(a < imm),
    Operation.XORI: lambda a, imm: a ^ imm,
    Operation.ORI: lambda a, imm: a | imm,
    Operation.ANDI: lambda a, imm: a & imm,
}


def _shift_left(value: int, amount: int) -> int:
    return value << amount


def _shift_right_logical(value: int, amount: int) -> int:
    return value >> amount


def _shift_right_arithmetic(value: int, amount: int) -> int:
    return _signed(value) >> amount


# Register shifts take their amount from the rs2 field of the instruction.
_REGISTER_SHIFTS: dict[Operation, _BinaryOp] = {
    Operation.SLL: _shift_left,
    Operation.SRL: _shift_right_logical,
    Operation.SRA: _shift_right_arithmetic,
}

_IMMEDIATE_SHIFTS: dict[Operation, _BinaryOp] = {
    Operation.SLLI: _shift_left,
    Operation.SRLI: _shift_right_logical,
    Operation.SRAI: _shift_right_arithmetic,
}

_BRANCHES: dict[Operation, Callable[[int, int], bool]] = {
    Operation.BEQ: lambda a, b: a == b,
    Operation.BNE: lambda a, b: a != b,
    Operation.BLT: lambda a, b: _signed(a) < _signed(b),
    Operation.BGE: lambda a, b: _signed(a) >= _signed(b),
    Operation.BLTU: lambda a, b: a < b,
    Operation.BGEU: lambda a, b: a >= b,
}

_LOADS: dict[Operation, Callable[[int], int]] = {
    Operation.LW: lambda word: word,
    Operation.LH: lambda word: sign_extend(word & 0xFFFF, 16),
    Operation.LB: lambda word: sign_extend(word & 0xFF, 8),
    Operation.LHU: lambda word: word & 0xFFFF,
    Operation.LBU: lambda word: word & 0xFF,
}

_STORE_MASKS = {
    Operation.SW: 0xF,
    Operation.SH: 0x3,
    Operation.SB: 0x1,
}

_CSR_OPERATIONS = frozenset(
    {
        Operation.CSRRW,
        Operation.CSRRS,
        Operation.CSRRC,
        Operation.CSRRWI,
        Operation.CSRRSI,
        Operation.CSRRCI,
    }
)


def _emit(text: str, stream: TextIO | None = None) -> str:
    out = sys.stdout if stream is None else stream
    out.write(text + "\n")
    out.flush()
    return text


class RV32ICPU:
    """A single-hart RV32I core with machine-mode timer interrupts."""

    def __init__(self) -> None:
        self.registers = [0] * 32
        self.pc = 0
        self.csr_file = CsrFile()
        self.device_master: Device | None = None
        self.timer: Timer | None = None
        self.instruction_count = 0

    def bind_device(self, device: Device) -> None:
        """Attach the device (usually the system bus) used for fetches and data."""
        self.device_master = device

    def bind_timer(self, timer: Timer) -> None:
        """Attach the timer whose pending flag raises machine timer interrupts."""
        self.timer = timer

    def _handle_interrupts(self) -> bool:
        if self.timer is None:
            self.csr_file.set_timer_interrupt_pending(False)
            return False

        pending = self.timer.is_interrupt_pending()
        self.csr_file.set_timer_interrupt_pending(pending)
        if not pending:
            return False

        if not (
            self.csr_file.machine_interrupts_enabled()
            and self.csr_file.machine_timer_interrupt_enabled()
        ):
            return False

        self.csr_file.enter_machine_trap(self.pc, CsrFile.MACHINE_TIMER_INTERRUPT_CAUSE)
        self.pc = self.csr_file.mtvec_base()
        self.csr_file.set_timer_interrupt_pending(False)
        return True

    def _execute_csr_instruction(self, instr: Instruction) -> bool:
        address = instr.csr & 0xFFFF
        if not self.csr_file.is_supported(address):
            print(f"Unsupported CSR address: 0x{address:x}", file=sys.stderr)
            return False

        old_value = self.csr_file.read(address)
        source = self.registers[instr.rs1]
        op = instr.operation

        if op is Operation.CSRRW:
            self.csr_file.write(address, source)
        elif op is Operation.CSRRS:
            if instr.rs1:
                self.csr_file.write(address, old_value | source)
        elif op is Operation.CSRRC:
            if instr.rs1:
                self.csr_file.write(address, old_value & ~source & _MASK32)
        elif op is Operation.CSRRWI:
            self.csr_file.write(address, instr.rs1)
        elif op is Operation.CSRRSI:
            if instr.rs1:
                self.csr_file.write(address, old_value | instr.rs1)
        elif op is Operation.CSRRCI:
            if instr.rs1:
                self.csr_file.write(address, old_value & ~instr.rs1 & _MASK32)
        else:
            return False

        if instr.rd:
            self.registers[instr.rd] = old_value
        return True

    def tick(self) -> bool:
        """Take a pending interrupt or execute one instruction.

        Returns False once execution should stop (ECALL, an unrecognised
        instruction or an unsupported CSR access).
        """
        if self._handle_interrupts():
            return True

        if self.device_master is None:
            raise RuntimeError("no device bound to the CPU")
        bus = self.device_master

        instr = decode_instruction(bus.read(self.pc))
        self.instruction_count += 1

        regs = self.registers
        pc = self.pc
        op = instr.operation
        src1 = regs[instr.rs1]
        src2 = regs[instr.rs2]
        next_pc = (pc + 4) & _MASK32
        running = True

        if op in _REGISTER_OPS:
            regs[instr.rd] = _REGISTER_OPS[op](src1, src2) & _MASK32
        elif op in _REGISTER_SHIFTS:
            regs[instr.rd] = _REGISTER_SHIFTS[op](src1, instr.shamt) & _MASK32
        elif op in _IMMEDIATE_OPS:
            regs[instr.rd] = _IMMEDIATE_OPS[op](src1, instr.imm) & _MASK32
        elif op in _IMMEDIATE_SHIFTS:
            regs[instr.rd] = _IMMEDIATE_SHIFTS[op](src1, instr.imm & 0x1F) & _MASK32
        elif op in _BRANCHES:
            if _BRANCHES[op](src1, src2):
                next_pc = (pc + instr.imm) & _MASK32
        elif op in _LOADS:
            word = bus.read((src1 + instr.imm) & _MASK32)
            regs[instr.rd] = _LOADS[op](word) & _MASK32
        elif op in _STORE_MASKS:
            bus.write((src1 + instr.imm) & _MASK32, src2, _STORE_MASKS[op])
        elif op is Operation.LUI:
            regs[instr.rd] = instr.imm
        elif op is Operation.AUIPC:
            regs[instr.rd] = (pc + instr.imm) & _MASK32
        elif op is Operation.JAL:
            regs[instr.rd] = (pc + 4) & _MASK32
            next_pc = (pc + instr.imm) & 0xFFFFFFFC
        elif op is Operation.JALR:
            regs[instr.rd] = (pc + 4) & _MASK32
            next_pc = (regs[instr.rs1] + instr.imm) & 0xFFFFFFFC
        elif op in _CSR_OPERATIONS:
            running = self._execute_csr_instruction(instr)
        elif op is Operation.MRET:
            next_pc = self.csr_file.mret_pc()
        elif op is Operation.ECALL:
            running = False
        else:
            print(f"Unrecognized instruction: {instr.opcode}", file=sys.stderr)
            running = False

        regs[0] = 0
        self.pc = next_pc
        return running

    def format_registers(self, hexadecimal: bool) -> str:
        """Render the register file, eight registers per row."""
        lines = [_RULE, "|                Register state                |", _RULE]
        row: list[str] = []
        for index, value in enumerate(self.registers):
            cell = f"0x{value:08X}" if hexadecimal else f"{value:10d}"
            row.append(f"x{index:<2d}: {cell}\t")
            if (index + 1) % 8 == 0:
                lines.append("".join(row))
                row = []
        lines.append(f"Base: {'Hexadecimal' if hexadecimal else 'Decimal'}")
        lines.append(_RULE)
        return "\n".join(lines)

    def dump_registers(self, hexadecimal: bool) -> str:
        """Write the register file to standard output and return the text."""
        return _emit(self.format_registers(hexadecimal))

    def dump_instruction_count(self) -> str:
        """Write the executed-instruction count to standard output and return the text."""
        return _emit(f"Total instructions executed: {self.instruction_count}")