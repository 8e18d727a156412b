"""Machine-mode control and status registers."""

from __future__ import annotations


class CsrFile:
    """The small set of machine CSRs the simulator supports."""

    MSTATUS = 0x300
    MIE = 0x304
    MTVEC = 0x305
    MEPC = 0x341
    MCAUSE = 0x342
    MIP = 0x344

    MSTATUS_MIE = 1 << 3
    MSTATUS_MPIE = 1 << 7
    MACHINE_TIMER_INTERRUPT_BIT = 1 << 7
    MACHINE_TIMER_INTERRUPT_CAUSE = 0x80000007

    _SUPPORTED = frozenset({MSTATUS, MIE, MTVEC, MEPC, MCAUSE, MIP})
    _MASK32 = 0xFFFFFFFF

    def __init__(self) -> None:
        self._values: dict[int, int] = {}
        self.reset()

    def reset(self) -> None:
        """Clear every register to zero."""
        self._values = dict.fromkeys(self._SUPPORTED, 0)

    def is_supported(self, address: int) -> bool:
        return address in self._SUPPORTED

    def read(self, address: int) -> int:
        """Return the register value; unsupported addresses read as zero."""
        if not self.is_supported(address):
            print(f"Warning: Attempt to read unsupported CSR address 0x{address:x}")
            return 0
        return self._values[address]

    def write(self, address: int, value: int) -> None:
        """Store a value after masking it to the register's writable bits."""
        if not self.is_supported(address):
            print(f"Warning: Attempt to write unsupported CSR address 0x{address:x}")
            return
        self._values[address] = self._sanitize(address, value & self._MASK32)

    def machine_interrupts_enabled(self) -> bool:
        return bool(self.read(self.MSTATUS) & self.MSTATUS_MIE)

    def machine_timer_interrupt_enabled(self) -> bool:
        return bool(self.read(self.MIE) & self.MACHINE_TIMER_INTERRUPT_BIT)

    def set_timer_interrupt_pending(self, pending: bool) -> None:
        mip = self.read(self.MIP)
        if pending:
            mip |= self.MACHINE_TIMER_INTERRUPT_BIT
        else:
            mip &= ~self.MACHINE_TIMER_INTERRUPT_BIT
        self.write(self.MIP, mip)

    def enter_machine_trap(self, return_pc: int, cause: int) -> None:
        """Record a trap and move MIE into MPIE, disabling interrupts."""
        self.write(self.MEPC, return_pc)
        self.write(self.MCAUSE, cause)
        mstatus = self.read(self.MSTATUS)
        if mstatus & self.MSTATUS_MIE:
            mstatus |= self.MSTATUS_MPIE
        else:
            mstatus &= ~self.MSTATUS_MPIE
        mstatus &= ~self.MSTATUS_MIE
        self.write(self.MSTATUS, mstatus)

    def mtvec_base(self) -> int:
        return self.read(self.MTVEC) & ~0x3 & self._MASK32

    def mret_pc(self) -> int:
        """Restore MIE from MPIE, set MPIE, and return the saved exception PC."""
        mstatus = self.read(self.MSTATUS)
        if mstatus & self.MSTATUS_MPIE:
            mstatus |= self.MSTATUS_MIE
        else:
            mstatus &= ~self.MSTATUS_MIE
        mstatus |= self.MSTATUS_MPIE
        self.write(self.MSTATUS, mstatus)
        return self.read(self.MEPC)

    def _sanitize(self, address: int, value: int) -> int:
        if address == self.MSTATUS:
            return value & (self.MSTATUS_MIE | self.MSTATUS_MPIE)
        if address in (self.MIE, self.MIP):
            return value & self.MACHINE_TIMER_INTERRUPT_BIT
        if address in (self.MTVEC, self.MEPC):
            return value & ~0x3 & self._MASK32
        if address == self.MCAUSE:
            return value
        return 0