"""Error taxonomy for the chip8-vm interpreter.

Fatal errors halt the CPU and propagate to the host:
    MemoryAccessError: fetch or data access outside the 4096-byte space
    StackOverflowError: CALL with all fifteen return slots in use
    StackUnderflowError: RET with an empty stack
    HaltedError: a cycle was requested after a fatal error

Load errors are raised by the loader before execution starts:
    RomLoadError: ROM missing, unreadable or too large

Unknown opcodes are not errors; they decode to a no-op.
"""

from typing import Optional


class VMError(RuntimeError):
    """Base class for fatal interpreter errors.

    Attributes:
        address: Memory or stack address involved in the fault (if any)
        pc: Address of the instruction that faulted (set by the CPU)
        opcode: Instruction word that faulted (set by the CPU)
    """

    def __init__(self, message: str, address: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.address = address
        self.pc: Optional[int] = None
        self.opcode: Optional[int] = None

    def at(self, pc: int, opcode: Optional[int]) -> "VMError":
        """Attach the faulting instruction location and return self."""
        self.pc = pc
        self.opcode = opcode
        return self

    def __str__(self) -> str:
        if self.pc is None:
            return self.message
        if self.opcode is None:
            return f"{self.message} (pc=0x{self.pc:03X})"
        return f"{self.message} (pc=0x{self.pc:03X}, opcode=0x{self.opcode:04X})"


class MemoryAccessError(VMError):
    """Access outside the emulated address space."""


class StackOverflowError(VMError):
    """Subroutine call with no free stack slot."""


class StackUnderflowError(VMError):
    """Return with an empty stack."""


class HaltedError(VMError):
    """Cycle requested on a halted CPU."""


class RomLoadError(VMError):
    """ROM could not be read or does not fit in program memory."""
