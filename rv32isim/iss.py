"""The instruction-set simulator: wires up the CPU, bus and devices and runs."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from rv32isim.cpu import RV32ICPU
from rv32isim.decode import parse_memory_size
from rv32isim.devices import BusError, Memory, SystemBus, Timer, Uart
from rv32isim.loader import ELFError, ELFLoader

MEMORY_BASE = 0x40000000
UART_BASE = 0x400
UART_LENGTH = 0x100
TIMER_BASE = 0x20000000
TIMER_LENGTH = 0xBFFF


@dataclass
class ISSConfiguration:
    """What to run and how much RAM to give it."""

    elf_file_path: str | Path = ""
    memory_size: int = 512 * 1024


class ISS:
    """A complete simulated machine loaded with one ELF program."""

    def __init__(self, config: ISSConfiguration, uart_stream: TextIO | None = None) -> None:
        self.config = config
        self.cpu = RV32ICPU()
        self.memory = Memory(MEMORY_BASE, config.memory_size)
        self.bus = SystemBus()
        self.uart = Uart(uart_stream)
        self.timer = Timer()
        self.cpu.bind_device(self.bus)
        self.cpu.bind_timer(self.timer)

        self._attach_devices()

        loader = ELFLoader()
        loader.load_elf(config.elf_file_path)
        loader.load_program_to_memory(self.memory)
        self.cpu.pc = loader.entry_point

    def _attach_devices(self) -> None:
        self.bus.attach_device(UART_BASE, UART_LENGTH, self.uart)
        self.bus.attach_device(TIMER_BASE, TIMER_LENGTH, self.timer)
        self.bus.attach_device(MEMORY_BASE, self.config.memory_size, self.memory)
        self.bus.list_devices()

    def run(self) -> None:
        """Advance the timer and the CPU together until the CPU stops."""
        print("Starting simulation...\n\n")
        running = True
        while running:
            self.timer.tick()
            running = self.cpu.tick()

    def dump_cpu_info(self, hexadecimal: bool) -> None:
        self.cpu.dump_registers(hexadecimal)
        self.cpu.dump_instruction_count()

    def dump_memory(self, start_address: int, length: int) -> None:
        """Print each 32-bit word of memory in the given range."""
        for address in range(start_address, start_address + length, 4):
            word = self.memory.read(address)
            print(f"0x{address:x}: 0x{word:x}")


def _parse_args(args: list[str]) -> ISSConfiguration:
    config = ISSConfiguration()
    remaining = iter(args)
    for arg in remaining:
        if arg == "-M":
            size = next(remaining, None)
            if size is None:
                config.elf_file_path = arg
            else:
                config.memory_size = parse_memory_size(size)
        else:
            config.elf_file_path = arg
    return config


def main(argv: list[str] | None = None) -> int:
    """Run an ELF program: ``rv32i-sim -M <memory_size> <elf_file_path>``."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: rv32i-sim -M <memory_size> <elf_file_path>", file=sys.stderr)
        return 1

    try:
        config = _parse_args(args)
        simulator = ISS(config)
        simulator.run()
    except (ELFError, BusError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    simulator.dump_cpu_info(True)
    return 0


if __name__ == "__main__":
    sys.exit(main())