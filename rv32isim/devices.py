"""Memory-mapped devices and the system bus that routes accesses to them."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import TextIO

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


class BusError(Exception):
    """Raised when an access falls outside a device or the mapped address space."""


class Device(ABC):
    """A device that answers 32-bit reads and byte-masked 32-bit writes."""

    @abstractmethod
    def read(self, address: int) -> int:
        """Return the 32-bit word at ``address``."""

    @abstractmethod
    def write(self, address: int, value: int, mask: int) -> None:
        """Store the bytes of ``value`` selected by the 4-bit ``mask``."""


class Memory(Device):
    """Little-endian RAM occupying ``size`` bytes from ``base``."""

    def __init__(self, base: int = 0, size: int = 0) -> None:
        self.base = base
        self.size = size
        self._mem = bytearray(size)

    def _offset(self, address: int) -> int:
        if not self.base <= address < self.base + self.size:
            raise BusError("Memory access out of bounds")
        return address - self.base

    def read(self, address: int) -> int:
        offset = self._offset(address)
        if offset + 4 > self.size:
            raise BusError("Memory load_word out of bounds")
        return int.from_bytes(self._mem[offset:offset + 4], "little")

    def write(self, address: int, value: int, mask: int = 0xF) -> None:
        offset = self._offset(address)
        if offset + 4 > self.size:
            raise BusError("Memory store_word out of bounds")
        for lane, byte in enumerate((value & _MASK32).to_bytes(4, "little")):
            if mask & (1 << lane):
                self._mem[offset + lane] = byte


class Timer(Device):
    """Machine timer with 64-bit ``mtime`` and ``mtimecmp`` registers."""

    MTIMECMP_OFFSET = 0x4000
    MTIME_OFFSET = 0xBFF8

    def __init__(self) -> None:
        self.mtime = 0
        self.mtimecmp = _MASK64
        self._interrupt_pending = False

    def _update_interrupt_pending(self) -> None:
        self._interrupt_pending = self.mtime >= self.mtimecmp

    def read(self, address: int) -> int:
        address &= 0xFFFF
        if address == self.MTIME_OFFSET:
            return self.mtime & _MASK32
        if address == self.MTIME_OFFSET + 4:
            return (self.mtime >> 32) & _MASK32
        if address == self.MTIMECMP_OFFSET:
            return self.mtimecmp & _MASK32
        if address == self.MTIMECMP_OFFSET + 4:
            return (self.mtimecmp >> 32) & _MASK32
        raise BusError(f"Invalid address for Timer read: 0x{address:x}")

    def write(self, address: int, value: int, mask: int = 0xF) -> None:
        address &= 0xFFFF
        value &= _MASK32
        if address == self.MTIME_OFFSET:
            self.mtime = (self.mtime & ~_MASK32 & _MASK64) | value
        elif address == self.MTIME_OFFSET + 4:
            self.mtime = (self.mtime & _MASK32) | (value << 32)
        elif address == self.MTIMECMP_OFFSET:
            self.mtimecmp = (self.mtimecmp & ~_MASK32 & _MASK64) | value
        elif address == self.MTIMECMP_OFFSET + 4:
            self.mtimecmp = (self.mtimecmp & _MASK32) | (value << 32)
        else:
            raise BusError(f"Invalid address for Timer write: 0x{address:x}")
        self._update_interrupt_pending()

    def tick(self) -> None:
        """Advance time by one tick."""
        self.mtime = (self.mtime + 1) & _MASK64
        self._update_interrupt_pending()

    def clear_interrupt(self) -> None:
        self._interrupt_pending = False

    def is_interrupt_pending(self) -> bool:
        return self._interrupt_pending


class Uart(Device):
    """Output-only serial port: every write emits the low byte as a character."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def read(self, address: int) -> int:
        return 0

    def write(self, address: int, value: int, mask: int = 0xF) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(chr(value & 0xFF))
        stream.flush()


class SystemBus(Device):
    """Routes accesses to whichever attached device covers the address."""

    def __init__(self) -> None:
        self._devices: dict[tuple[int, int], Device] = {}

    def _find(self, address: int) -> Device | None:
        for (start, length), device in self._devices.items():
            if start <= address < start + length:
                return device
        return None

    def read(self, address: int) -> int:
        device = self._find(address)
        if device is None:
            print(f"Read from unmapped address: 0x{address:x}")
            raise BusError("Address not found in any device")
        return device.read(address)

    def write(self, address: int, value: int, mask: int = 0xF) -> None:
        device = self._find(address)
        if device is None:
            print(f"Write to unmapped address: 0x{address:x}")
            raise BusError("Address not found in any device")
        device.write(address, value, mask)

    def attach_device(self, start_address: int, length: int, device: Device) -> None:
        """Map ``device`` at ``[start_address, start_address + length)``."""
        self._devices[(start_address, length)] = device

    def list_devices(self) -> None:
        rule = "=" * 48
        print(rule)
        print("Attached devices:")
        for start, length in self._devices:
            print(f"Device at address range [0x{start:x}, 0x{start + length - 1:x}]")
        print(rule)