# rv32isim

An instruction set simulator for the 32-bit RISC-V base integer ISA (RV32I).
It loads a statically linked 32-bit little-endian ELF executable into
simulated memory and runs it until the program executes `ecall`, hits an
instruction it does not recognise, or accesses an unsupported CSR.

The simulated machine has:

- RAM mapped at `0x40000000`, sized on the command line (512 KiB by default)
- a UART at `0x400`: each byte written to it goes to standard output
- a machine timer at `0x20000000` with `mtime` at offset `0xBFF8` and
  `mtimecmp` at offset `0x4000`; it advances by one tick per CPU step
- the machine-mode CSRs `mstatus`, `mie`, `mtvec`, `mepc`, `mcause` and `mip`,
  with machine timer interrupts and `mret`

## Installation

```
pip install .
```

## Running a program

```
rv32i-sim -M 512K firmware.elf
```

`-M` sets the memory size. It accepts a plain number of bytes or a number
followed by `K`, `M` or `G` (in either case). When the program stops, the
simulator prints the register file in hexadecimal and the number of
instructions executed. A missing or malformed ELF file, an access to an
unmapped address, or an invalid size makes the command print an error and
exit with status 1.

## Parsing assembly

```
rv32i-asm program.s
```

This reads an assembly file, splits it at the first `.data` directive into
its text and data sections, and prints each parsed line of the text section
with its label, opcode and operands. Comments starting with `#` and blank
lines are ignored.

## Using it as a library

```python
from rv32isim.iss import ISS, ISSConfiguration

sim = ISS(ISSConfiguration(elf_file_path="firmware.elf", memory_size=512 * 1024))
sim.run()
sim.dump_cpu_info(True)
sim.dump_memory(0x40000000, 64)
```

`ISS` also takes an optional `uart_stream` to send UART output to any text
stream instead of standard output.

The parts can be used on their own:

- `rv32isim.decode` — `decode_instruction` turns a 32-bit word into an
  `Instruction` with an `Operation`; `sign_extend` and `parse_memory_size`
  are the helpers behind it and the `-M` option.
- `rv32isim.csr` — `CsrFile`, the machine CSRs and trap entry/return logic.
- `rv32isim.devices` — `Memory`, `Timer`, `Uart` and `SystemBus`, all
  `Device`s; bad accesses raise `BusError`.
- `rv32isim.loader` — `ELFLoader` collects the `PT_LOAD` segments and entry
  point of an ELF file and copies them into a device; errors raise `ELFError`.
- `rv32isim.cpu` — `RV32ICPU` executes one instruction per `tick()` against
  any bound device; `format_registers` returns the register dump as text.
- `rv32isim.assembler` — `AsmProgram.from_source`, `parse_asm_program`,
  `parse_asm_instruction` and `format_asm_instruction`.

## What it does not do

`rv32i-asm` only parses assembly source into labels, opcodes and operand
strings. It does not encode instructions into machine code or produce an
object or ELF file; programs for the simulator have to be built with a
separate RISC-V toolchain.

## Tests

```
pip install .[test]
pytest
```