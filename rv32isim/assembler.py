"""Parsing of RV32I assembly source into labelled instructions."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AsmProgram:
    """An assembly program split into its text and data sections."""

    text: str = ""
    data: str = ""

    @classmethod
    def from_source(cls, program: str) -> AsmProgram:
        """Split at the first ``.data`` directive; everything before is text."""
        data_pos = program.find(".data")
        if data_pos == -1:
            return cls(program, "")
        return cls(program[:data_pos], program[data_pos:])


@dataclass
class AsmInstruction:
    """One source line: optional label, opcode and operand strings."""

    label: str = ""
    opcode: str = ""
    operands: list[str] = field(default_factory=list)


def load_asm_file(filename: str | Path) -> str:
    """Return the whole contents of an assembly file."""
    try:
        return Path(filename).read_text()
    except OSError as exc:
        raise OSError(f"Could not open file: {filename}") from exc


def parse_asm_instruction(line: str) -> AsmInstruction:
    """Parse a single comment-free, trimmed line of assembly."""
    instruction = AsmInstruction()
    label, colon, rest = line.partition(":")
    if colon:
        instruction.label = label
    else:
        rest = line
    rest = rest.lstrip()

    opcode, space, operand_text = rest.partition(" ")
    instruction.opcode = opcode
    if not space or not operand_text:
        return instruction

    parts = operand_text.split(",")
    if operand_text.endswith(","):
        parts.pop()
    instruction.operands = [part.lstrip() for part in parts]
    return instruction


def parse_asm_program(program: str) -> list[AsmInstruction]:
    """Parse every non-empty line, dropping ``#`` comments."""
    instructions = []
    for raw in program.split("\n"):
        line = raw.split("#", 1)[0].strip(" \t")
        if line:
            instructions.append(parse_asm_instruction(line))
    return instructions


def format_asm_instruction(instruction: AsmInstruction) -> str:
    """Render an instruction as ``label: opcode op1, op2``."""
    text = f"{instruction.label}: " if instruction.label else ""
    text += instruction.opcode
    if instruction.operands:
        text += " " + ", ".join(instruction.operands)
    return text


def print_asm_instruction(instruction: AsmInstruction) -> None:
    print(format_asm_instruction(instruction))


def main(argv: list[str] | None = None) -> int:
    """Load an assembly file, show its sections and the parsed instructions."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: assembler <assembly_file>", file=sys.stderr)
        return 1

    filename = args[0]
    try:
        asm_code = load_asm_file(filename)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Loaded assembly code from {filename}:")

    program = AsmProgram.from_source(asm_code)
    print("Text Section:\n" + program.text)
    print("Data Section:\n" + program.data)

    print("Parsed Instructions:")
    for instruction in parse_asm_program(program.text):
        print_asm_instruction(instruction)
    return 0


if __name__ == "__main__":
    sys.exit(main())