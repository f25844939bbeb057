"""CPUState: machine state for the chip8-vm interpreter.

This module defines the register file, memory image, stack and timers of
the emulated machine, together with the bounds-checked accessors every
instruction goes through.

State Components:
    - Memory: 4096 bytes; font at 0x000, programs from 0x200
    - Registers: V0-VF (16 x 8-bit); VF doubles as the flag register
    - I: 16-bit index register
    - PC: Program counter (byte address)
    - Stack: 16 return-address slots with stack pointer SP (0-15)
    - Timers: delay and sound, 8-bit, decremented by the host at 60 Hz
    - Status: RUNNING, AWAITING_KEY (Fx0A pending) or HALTED
    - Display and keypad owned by this state block

Every access outside memory or the stack raises a VMError subclass
rather than wrapping.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .display import Display
from .errors import MemoryAccessError, StackOverflowError, StackUnderflowError
from .keypad import Keypad


MEMORY_SIZE = 4096
PROGRAM_START = 0x200
FONT_START = 0x000
NUM_REGISTERS = 16
STACK_SIZE = 16
FLAG_REGISTER = 0xF
TIMER_HZ = 60

# 4x5 hexadecimal glyphs 0-F, five bytes each
FONT_SPRITES = (
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
)
FONT_GLYPH_SIZE = 5


class CPUStatus(enum.Enum):
    RUNNING = "running"
    AWAITING_KEY = "awaiting_key"
    HALTED = "halted"


def _blank_memory() -> bytearray:
    memory = bytearray(MEMORY_SIZE)
    memory[FONT_START:FONT_START + len(FONT_SPRITES)] = bytes(FONT_SPRITES)
    return memory


@dataclass
class CPUState:
    """Mutable machine state.

    Attributes:
        memory: 4096-byte address space
        registers: V0-VF values (0-255); VF is an ordinary slot
        i: Index register
        pc: Program counter
        stack: Return-address slots (slot 0 is never written)
        sp: Stack pointer (0 = empty)
        delay_timer: Delay timer value
        sound_timer: Sound timer value
        status: Execution status
        key_register: Destination register of a pending Fx0A
        cycle_count: Number of cycles completed
        display: Display buffer
        keypad: Keypad state
    """
    memory: bytearray = field(default_factory=_blank_memory)
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    i: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    sp: int = 0
    delay_timer: int = 0
    sound_timer: int = 0
    status: CPUStatus = CPUStatus.RUNNING
    key_register: Optional[int] = None
    cycle_count: int = 0
    display: Display = field(default_factory=Display)
    keypad: Keypad = field(default_factory=Keypad)

    # =========================================================================
    # Memory
    # =========================================================================

    def _check_range(self, address: int, length: int) -> None:
        if address < 0 or address + length > MEMORY_SIZE:
            raise MemoryAccessError(
                f"Memory access out of range: 0x{address:04X}+{length}",
                address=address,
            )

    def read_byte(self, address: int) -> int:
        self._check_range(address, 1)
        return self.memory[address]

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word at address and address + 1."""
        self._check_range(address, 2)
        return (self.memory[address] << 8) | self.memory[address + 1]

    def read_block(self, address: int, length: int) -> bytes:
        self._check_range(address, length)
        return bytes(self.memory[address:address + length])

    def write_block(self, address: int, data: bytes) -> None:
        """Write data starting at address.

        The whole range is checked before any byte is written.

        Raises:
            MemoryAccessError: If the block does not fit in memory
        """
        self._check_range(address, len(data))
        self.memory[address:address + len(data)] = data

    # =========================================================================
    # Stack
    # =========================================================================

    def push(self, address: int) -> None:
        """Store a return address: SP is incremented, then written."""
        if self.sp >= STACK_SIZE - 1:
            raise StackOverflowError(
                f"Stack overflow: SP={self.sp}", address=address
            )
        self.sp += 1
        self.stack[self.sp] = address

    def pop(self) -> int:
        """Read the top return address, then decrement SP."""
        if self.sp <= 0:
            raise StackUnderflowError("Stack underflow: SP=0")
        address = self.stack[self.sp]
        self.sp -= 1
        return address

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of V[index].

        Raises:
            KeyError: If the register doesn't exist
        """
        if not 0 <= index < NUM_REGISTERS:
            raise KeyError(f"Invalid register: V{index}")
        return self.registers[index]

    def set_register(self, index: int, value: int) -> None:
        """Set V[index], keeping the low 8 bits of value."""
        if not 0 <= index < NUM_REGISTERS:
            raise KeyError(f"Invalid register: V{index}")
        self.registers[index] = value & 0xFF

    def set_flag(self, value: bool) -> None:
        self.registers[FLAG_REGISTER] = 1 if value else 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0..VF."""
        return {f"V{index:X}": value for index, value in enumerate(self.registers)}

    # =========================================================================
    # Tracing and validation
    # =========================================================================

    def snapshot(self) -> dict:
        """Copy of the architectural state for tracing.

        Memory and display are excluded; they are large and the trace only
        records register-level changes.
        """
        return {
            "registers": list(self.registers),
            "i": self.i,
            "pc": self.pc,
            "sp": self.sp,
            "stack": list(self.stack),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "status": self.status.value,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Check that every field is within its architectural range."""
        if len(self.memory) != MEMORY_SIZE:
            return False
        if len(self.registers) != NUM_REGISTERS:
            return False
        if any(not 0 <= value <= 0xFF for value in self.registers):
            return False
        if not 0 <= self.i <= 0xFFFF:
            return False
        if not 0 <= self.pc <= 0xFFFF:
            return False
        if len(self.stack) != STACK_SIZE or not 0 <= self.sp < STACK_SIZE:
            return False
        if not 0 <= self.delay_timer <= 0xFF or not 0 <= self.sound_timer <= 0xFF:
            return False
        if self.status is CPUStatus.AWAITING_KEY and self.key_register is None:
            return False
        return self.cycle_count >= 0

    def __str__(self) -> str:
        regs = " ".join(f"V{k:X}={v:02X}" for k, v in enumerate(self.registers))
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.i:03X} "
            f"SP={self.sp} DT={self.delay_timer} ST={self.sound_timer} {regs} "
            f"{self.status.value.upper()}"
        )


def create_initial_state(display: Optional[Display] = None,
                         keypad: Optional[Keypad] = None) -> CPUState:
    """Create a power-on state with the font loaded and PC at 0x200.

    Args:
        display: Display to keep (cleared) instead of creating a new one
        keypad: Keypad to keep instead of creating a new one

    Returns:
        Fresh CPUState
    """
    if display is None:
        display = Display()
    else:
        display.clear()
    return CPUState(display=display, keypad=keypad if keypad is not None else Keypad())
