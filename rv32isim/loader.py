"""Loading of 32-bit little-endian ELF executables into memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

from rv32isim.devices import Device

_ELF_MAGIC = b"\x7fELF"
_EHDR = struct.Struct("<16sHHIIIIIHHHHHH")
_PHDR = struct.Struct("<8I")
PT_LOAD = 1


class ELFError(Exception):
    """Raised when an ELF file cannot be read or is malformed."""


@dataclass(frozen=True)
class Segment:
    """A program header of an ELF file."""

    p_type: int
    p_offset: int
    p_vaddr: int
    p_paddr: int
    p_filesz: int
    p_memsz: int
    p_flags: int
    p_align: int


class ELFLoader:
    """Reads the loadable segments and entry point of an ELF32 file."""

    def __init__(self) -> None:
        self.entry_point = 0
        self.segments: list[Segment] = []
        self._data = b""

    def load_elf(self, file_path: str | Path) -> None:
        """Parse the ELF header and collect its PT_LOAD segments."""
        try:
            self._data = Path(file_path).read_bytes()
        except OSError as exc:
            raise ELFError(f"Failed to open ELF file: {file_path}") from exc

        if self._data[:4] != _ELF_MAGIC:
            raise ELFError(f"Invalid ELF file: {file_path}")
        if len(self._data) < _EHDR.size:
            raise ELFError(f"Truncated ELF header: {file_path}")

        fields = _EHDR.unpack_from(self._data)
        self.entry_point = fields[4]
        phoff = fields[5]
        phnum = fields[10]

        for index in range(phnum):
            start = phoff + index * _PHDR.size
            if start + _PHDR.size > len(self._data):
                raise ELFError(f"Truncated program header table: {file_path}")
            segment = Segment(*_PHDR.unpack_from(self._data, start))
            if segment.p_type == PT_LOAD:
                self.segments.append(segment)
                print(
                    f"Find segment: vaddr=0x{segment.p_vaddr:x}, "
                    f"offset=0x{segment.p_offset:x}, filesz=0x{segment.p_filesz:x}"
                )

    def load_program_to_memory(self, memory: Device) -> None:
        """Copy every loadable segment's file bytes into ``memory``."""
        for segment in self.segments:
            print(
                f"Loading segment to memory: vaddr=0x{segment.p_vaddr:x}, "
                f"offset=0x{segment.p_offset:x}, filesz=0x{segment.p_filesz:x}"
            )
            end = segment.p_offset + segment.p_filesz
            if end > len(self._data):
                raise ELFError("Segment extends beyond end of file")
            payload = self._data[segment.p_offset:end]
            for offset, byte in enumerate(payload):
                memory.write(segment.p_vaddr + offset, byte, 0x1)