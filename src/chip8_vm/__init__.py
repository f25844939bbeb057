"""chip8-vm: Interpreter for an 8-bit fantasy-console instruction set.

This package implements a virtual machine that fetches 16-bit instructions
from a 4096-byte address space, decodes them into nibble fields and
applies the documented semantics of the base instruction set to a small
register file, a 64x32 monochrome display and a 16-key keypad.

Architecture:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
               |          |        |        |
            [PC-based] [nibbles] [OP_*]  [Verified
                                          Primitives]

Modules:
    display: 64x32 XOR pixel buffer with toroidal sprite wrapping
    keypad: 16-key input state and the host key layout
    state: CPUState (memory, V0-VF, I, PC, stack, timers, status)
    decode: Instruction word decoder, disassembler and hex-listing parser
    registry: Verified instruction primitives (OP_CLS, OP_DRW, etc.)
    cpu: Main Chip8CPU orchestrator
    errors: Fatal and load error types
"""

__version__ = "0.1.0"
__author__ = "chip8-vm Project"

from .display import Display
from .keypad import Keypad, KEY_LAYOUT, key_for_symbol
from .state import CPUState, CPUStatus
from .decode import Decoder, DecodeResult, disassemble, parse_program
from .registry import CPURegistry
from .cpu import Chip8CPU, ExecutionTraceEntry
from .errors import (
    VMError,
    MemoryAccessError,
    StackOverflowError,
    StackUnderflowError,
    HaltedError,
    RomLoadError,
)

__all__ = [
    "Display",
    "Keypad",
    "KEY_LAYOUT",
    "key_for_symbol",
    "CPUState",
    "CPUStatus",
    "Decoder",
    "DecodeResult",
    "disassemble",
    "parse_program",
    "CPURegistry",
    "Chip8CPU",
    "ExecutionTraceEntry",
    "VMError",
    "MemoryAccessError",
    "StackOverflowError",
    "StackUnderflowError",
    "HaltedError",
    "RomLoadError",
]
