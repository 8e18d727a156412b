"""RV32I instruction decoding and small numeric helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto

OPCODE_R_TYPE = 0x33
OPCODE_I_TYPE = 0x13
OPCODE_LOAD = 0x03
OPCODE_STORE = 0x23
OPCODE_BRANCH = 0x63
OPCODE_JAL = 0x6F
OPCODE_JALR = 0x67
OPCODE_LUI = 0x37
OPCODE_AUIPC = 0x17
OPCODE_SYSTEM = 0x73

ECALL_OPCODE = 0x00000073
MRET_OPCODE = 0x30200073

FUNCT7_ADD = 0x00
FUNCT7_SUB = 0x20
FUNCT7_SRL = 0x00
FUNCT7_SRA = 0x20
FUNCT7_SRLI = 0x00
FUNCT7_SRAI = 0x20

_MASK32 = 0xFFFFFFFF


class Operation(Enum):
    """Operations the decoder can recognise."""

    ADD = auto()
    SUB = auto()
    SLL = auto()
    SLT = auto()
    SLTU = auto()
    XOR = auto()
    SRL = auto()
    SRA = auto()
    OR = auto()
    AND = auto()
    ADDI = auto()
    SLTI = auto()
    SLTIU = auto()
    XORI = auto()
    ORI = auto()
    ANDI = auto()
    SLLI = auto()
    SRLI = auto()
    SRAI = auto()
    LW = auto()
    LH = auto()
    LB = auto()
    LHU = auto()
    LBU = auto()
    SW = auto()
    SH = auto()
    SB = auto()
    BEQ = auto()
    BNE = auto()
    BLT = auto()
    BGE = auto()
    BLTU = auto()
    BGEU = auto()
    LUI = auto()
    AUIPC = auto()
    JAL = auto()
    JALR = auto()
    CSRRW = auto()
    CSRRS = auto()
    CSRRC = auto()
    CSRRWI = auto()
    CSRRSI = auto()
    CSRRCI = auto()
    MRET = auto()
    ECALL = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class Instruction:
    """A decoded 32-bit instruction; all fields are unsigned 32-bit values."""

    instruction_word: int
    opcode: int
    rd: int
    rs1: int
    rs2: int
    imm: int
    shamt: int
    csr: int
    operation: Operation


_LOAD_OPS = {
    0x0: Operation.LB,
    0x1: Operation.LH,
    0x2: Operation.LW,
    0x4: Operation.LBU,
    0x5: Operation.LHU,
}

_R_TYPE_OPS = {
    0x1: Operation.SLL,
    0x2: Operation.SLT,
    0x3: Operation.SLTU,
    0x4: Operation.XOR,
    0x6: Operation.OR,
    0x7: Operation.AND,
}

_I_TYPE_OPS = {
    0x0: Operation.ADDI,
    0x2: Operation.SLTI,
    0x3: Operation.SLTIU,
    0x4: Operation.XORI,
    0x6: Operation.ORI,
    0x7: Operation.ANDI,
    0x1: Operation.SLLI,
}

_STORE_OPS = {
    0x0: Operation.SB,
    0x1: Operation.SH,
    0x2: Operation.SW,
}

_BRANCH_OPS = {
    0x0: Operation.BEQ,
    0x1: Operation.BNE,
    0x4: Operation.BLT,
    0x5: Operation.BGE,
    0x6: Operation.BLTU,
    0x7: Operation.BGEU,
}

_CSR_OPS = {
    0x1: Operation.CSRRW,
    0x2: Operation.CSRRS,
    0x3: Operation.CSRRC,
    0x5: Operation.CSRRWI,
    0x6: Operation.CSRRSI,
    0x7: Operation.CSRRCI,
}

_FIXED_OPS = {
    OPCODE_JAL: Operation.JAL,
    OPCODE_JALR: Operation.JALR,
    OPCODE_LUI: Operation.LUI,
    OPCODE_AUIPC: Operation.AUIPC,
}


def sign_extend(value: int, bits: int) -> int:
    """Sign-extend the low ``bits`` bits of ``value`` to an unsigned 32-bit word."""
    value &= _MASK32
    if value & (1 << (bits - 1)):
        return (value | ~((1 << bits) - 1)) & _MASK32
    return value


def _imm_i(word: int) -> int:
    return sign_extend(word >> 20, 12)


def _imm_s(word: int) -> int:
    imm11_5 = (word >> 25) & 0x7F
    imm4_0 = (word >> 7) & 0x1F
    return sign_extend((imm11_5 << 5) | imm4_0, 12)


def _imm_b(word: int) -> int:
    imm12 = (word >> 31) & 0x1
    imm10_5 = (word >> 25) & 0x3F
    imm4_1 = (word >> 8) & 0xF
    imm11 = (word >> 7) & 0x1
    return sign_extend((imm12 << 12) | (imm11 << 11) | (imm10_5 << 5) | (imm4_1 << 1), 13)


def _imm_j(word: int) -> int:
    imm20 = (word >> 31) & 0x1
    imm10_1 = (word >> 21) & 0x3FF
    imm11 = (word >> 20) & 0x1
    imm19_12 = (word >> 12) & 0xFF
    return sign_extend((imm20 << 20) | (imm19_12 << 12) | (imm11 << 11) | (imm10_1 << 1), 21)


def _imm_u(word: int) -> int:
    return word & 0xFFFFF000


_IMM_DECODERS = {
    OPCODE_LOAD: _imm_i,
    OPCODE_I_TYPE: _imm_i,
    OPCODE_JALR: _imm_i,
    OPCODE_STORE: _imm_s,
    OPCODE_BRANCH: _imm_b,
    OPCODE_JAL: _imm_j,
    OPCODE_LUI: _imm_u,
    OPCODE_AUIPC: _imm_u,
}


def _operation(word: int, opcode: int, funct3: int, funct7: int) -> Operation:
    if opcode == OPCODE_LOAD:
        return _LOAD_OPS.get(funct3, Operation.UNKNOWN)
    if opcode == OPCODE_R_TYPE:
        if funct3 == 0x0:
            return {FUNCT7_ADD: Operation.ADD, FUNCT7_SUB: Operation.SUB}.get(
                funct7, Operation.UNKNOWN
            )
        if funct3 == 0x5:
            return {FUNCT7_SRL: Operation.SRL, FUNCT7_SRA: Operation.SRA}.get(
                funct7, Operation.UNKNOWN
            )
        return _R_TYPE_OPS.get(funct3, Operation.UNKNOWN)
    if opcode == OPCODE_I_TYPE:
        if funct3 == 0x5:
            return {FUNCT7_SRLI: Operation.SRLI, FUNCT7_SRAI: Operation.SRAI}.get(
                funct7, Operation.UNKNOWN
            )
        return _I_TYPE_OPS.get(funct3, Operation.UNKNOWN)
    if opcode == OPCODE_STORE:
        return _STORE_OPS.get(funct3, Operation.UNKNOWN)
    if opcode == OPCODE_BRANCH:
        return _BRANCH_OPS.get(funct3, Operation.UNKNOWN)
    if opcode == OPCODE_SYSTEM:
        if word == ECALL_OPCODE:
            return Operation.ECALL
        if word == MRET_OPCODE:
            return Operation.MRET
        return _CSR_OPS.get(funct3, Operation.UNKNOWN)
    return _FIXED_OPS.get(opcode, Operation.UNKNOWN)


def decode_instruction(instruction_word: int) -> Instruction:
    """Split a raw instruction word into its fields and determine its operation."""
    word = instruction_word & _MASK32
    opcode = word & 0x7F
    funct3 = (word >> 12) & 0x7
    funct7 = (word >> 25) & 0x7F
    imm_decoder = _IMM_DECODERS.get(opcode)
    return Instruction(
        instruction_word=word,
        opcode=opcode,
        rd=(word >> 7) & 0x1F,
        rs1=(word >> 15) & 0x1F,
        rs2=(word >> 20) & 0x1F,
        imm=imm_decoder(word) if imm_decoder else 0,
        shamt=(word >> 20) & 0x1F,
        csr=(word >> 20) & 0xFFF,
        operation=_operation(word, opcode, funct3, funct7),
    )


_SIZE_MULTIPLIERS = {
    "k": 1024,
    "m": 1024 * 1024,
    "g": 1024 * 1024 * 1024,
}

_LEADING_NUMBER = re.compile(r"\s*\+?(\d+)")


def parse_memory_size(size_str: str) -> int:
    """Convert a size such as ``128K`` or ``4M`` into a number of bytes."""
    if not size_str:
        raise ValueError("empty memory size")
    multiplier = _SIZE_MULTIPLIERS.get(size_str[-1].lower())
    number_part = size_str[:-1] if multiplier else size_str
    match = _LEADING_NUMBER.match(number_part)
    if match is None:
        raise ValueError(f"invalid memory size: {size_str!r}")
    return int(match.group(1)) * (multiplier or 1)