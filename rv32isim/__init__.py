"""RV32I instruction set simulator with CSRs, timer and UART, and an assembly source parser."""

__version__ = "0.1.0"
__all__ = ["assembler", "cpu", "csr", "decode", "devices", "iss", "loader"]