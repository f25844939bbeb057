"""Chip8CPU: Main interpreter orchestrator for chip8-vm.

This module implements the full execution pipeline:
    MEMORY -> FETCH -> DECODE -> ADVANCE PC -> REGISTRY -> STATE

The host drives the interpreter one cycle at a time with execute_cycle()
and ticks the timers separately with tick_timer() at 60 Hz. There is no
internal scheduler and no blocking: the wait-for-key instruction leaves
the CPU in the AWAITING_KEY status until a cycle finds a key down.
"""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from .decode import Decoder, DecodeResult, disassemble
from .errors import HaltedError, RomLoadError, VMError
from .registry import CPURegistry
from .state import CPUState, CPUStatus, MEMORY_SIZE, PROGRAM_START, create_initial_state


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Captures one fetch-decode-execute cycle for debugging.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Address the instruction was fetched from
        opcode: Raw 16-bit instruction word (None if the fetch faulted)
        decode_result: Result from the decoder (None if the fetch faulted)
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution failed
    """
    cycle: int
    pc: int
    opcode: Optional[int]
    decode_result: Optional[DecodeResult]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None

    @property
    def instruction(self) -> str:
        if self.decode_result is None:
            return "<FETCH FAULT>"
        return disassemble(self.decode_result)


class Chip8CPU:
    """Interpreter for the base 8-bit fantasy-console instruction set.

    Attributes:
        decoder: Decoder for 16-bit instruction words
        registry: CPURegistry with the instruction primitives
        state: Current machine state (registers, memory, display, keypad)
        trace: List of execution trace entries (only filled when tracing)
        max_cycles: Default cycle budget for run()
        trace_enabled: Whether execute_cycle records trace entries
    """

    DEFAULT_MAX_CYCLES = 10000

    def __init__(
        self,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        trace: bool = False,
        seed: Optional[int] = None
    ):
        """Initialize the interpreter in its power-on state.

        Args:
            max_cycles: Number of cycles run() executes by default
            trace: Record pre/post state for every cycle
            seed: Seed for the RND instruction's random source
        """
        self.decoder = Decoder()
        self.registry = CPURegistry(rng=random.Random(seed))
        self.state: CPUState = create_initial_state()
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.trace_enabled = trace

    @property
    def display(self):
        return self.state.display

    @property
    def keypad(self):
        return self.state.keypad

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset(self) -> None:
        """Return to the power-on state.

        Memory is cleared and the font reloaded, registers, stack and
        timers are zeroed, the display is cleared and PC is set to 0x200.
        Held keys are kept; they belong to the host's input device.
        """
        self.state = create_initial_state(self.state.display, self.state.keypad)
        self.trace = []
        logger.info("CPU reset")

    def load(self, data: bytes) -> int:
        """Copy a program into memory at 0x200.

        No validation of the program is performed.

        Args:
            data: ROM bytes

        Returns:
            Number of bytes loaded

        Raises:
            RomLoadError: If the program does not fit in memory
        """
        capacity = MEMORY_SIZE - PROGRAM_START
        if len(data) > capacity:
            raise RomLoadError(
                f"ROM too large: {len(data)} bytes (max {capacity})"
            )
        self.state.write_block(PROGRAM_START, bytes(data))
        logger.info("Loaded %d bytes at 0x%03X", len(data), PROGRAM_START)
        return len(data)

    def load_rom(self, path: Union[str, Path]) -> int:
        """Read a ROM file and load it at 0x200.

        Args:
            path: Path to the ROM file

        Returns:
            Number of bytes loaded

        Raises:
            RomLoadError: If the file is missing, unreadable or too large
        """
        rom_path = Path(path)
        try:
            data = rom_path.read_bytes()
        except OSError as e:
            raise RomLoadError(f"Cannot read ROM {rom_path}: {e}") from e
        return self.load(data)

    # =========================================================================
    # Execution
    # =========================================================================

    def execute_cycle(self) -> DecodeResult:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> ADVANCE PC -> EXECUTE

        While awaiting a key, PC still points at the Fx0A instruction, so
        this re-runs it: the wait resolves if a key is down, otherwise the
        cycle changes nothing.

        Returns:
            DecodeResult of the executed instruction

        Raises:
            HaltedError: If a previous cycle faulted
            VMError: If this cycle faults; the CPU is halted first
        """
        state = self.state
        if state.status is CPUStatus.HALTED:
            raise HaltedError("CPU is halted").at(state.pc, None)

        pc = state.pc
        pre_state = state.snapshot() if self.trace_enabled else {}
        opcode: Optional[int] = None
        decode_result: Optional[DecodeResult] = None

        try:
            # FETCH
            opcode = state.read_word(pc)

            # DECODE
            decode_result = self.decoder.decode(opcode)

            # ADVANCE, then EXECUTE
            state.pc = pc + 2
            self.registry.execute(state, decode_result.key, decode_result.params)
        except VMError as e:
            e.at(pc, opcode)
            state.status = CPUStatus.HALTED
            logger.error("CPU halted: %s", e)
            self._record(pc, opcode, decode_result, pre_state, str(e))
            raise

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%03X: %04X  %s", pc, opcode, disassemble(decode_result))
        self._record(pc, opcode, decode_result, pre_state, None)
        return decode_result

    def _record(self, pc: int, opcode: Optional[int],
                decode_result: Optional[DecodeResult],
                pre_state: dict, error: Optional[str]) -> None:
        if not self.trace_enabled:
            return
        self.trace.append(ExecutionTraceEntry(
            cycle=len(self.trace),
            pc=pc,
            opcode=opcode,
            decode_result=decode_result,
            pre_state=pre_state,
            post_state=self.state.snapshot(),
            error=error
        ))

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Execute a fixed number of cycles.

        Timers are not ticked; hosts that need real-time behaviour drive
        execute_cycle() and tick_timer() themselves.

        Args:
            max_cycles: Number of cycles (uses instance default if None)

        Returns:
            Execution trace (empty unless tracing is enabled)

        Raises:
            VMError: If a cycle faults
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles
        for _ in range(limit):
            self.execute_cycle()
        return self.trace

    def tick_timer(self) -> None:
        """Decrement the delay and sound timers toward zero (60 Hz)."""
        if self.state.delay_timer > 0:
            self.state.delay_timer -= 1
        if self.state.sound_timer > 0:
            self.state.sound_timer -= 1

    def key_down(self, index: int) -> None:
        self.state.keypad.key_down(index)

    def key_up(self, index: int) -> None:
        self.state.keypad.key_up(index)

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of V[index]."""
        return self.state.get_register(index)

    def dump_registers(self) -> Dict[str, int]:
        """Get all register values keyed V0..VF."""
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_index(self) -> int:
        return self.state.i

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return list(self.trace)

    def is_halted(self) -> bool:
        return self.state.status is CPUStatus.HALTED

    def is_awaiting_key(self) -> bool:
        return self.state.status is CPUStatus.AWAITING_KEY

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP8-VM EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            opcode = f"{entry.opcode:04X}" if entry.opcode is not None else "----"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  {entry.pc:03X}: {opcode}  {entry.instruction}")

            # Show register changes
            pre_regs = entry.pre_state.get("registers", [])
            post_regs = entry.post_state.get("registers", [])
            changes = []
            for index, (before, after) in enumerate(zip(pre_regs, post_regs)):
                if before != after:
                    changes.append(f"V{index:X}: {before:02X} → {after:02X}")
            for name in ("i", "sp", "delay_timer", "sound_timer"):
                before = entry.pre_state.get(name)
                after = entry.post_state.get(name)
                if before != after:
                    changes.append(f"{name.upper()}: {before} → {after}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            # Show PC change
            post_pc = entry.post_state.get("pc", entry.pc)
            if post_pc != entry.pc + 2:
                print(f"  PC: {entry.pc:03X} → {post_pc:03X}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        summary = self.get_summary()
        print(f"  Registers: {summary['registers']}")
        print(f"  I: {summary['i']:03X}  PC: {summary['pc']:03X}  SP: {summary['sp']}")
        print(f"  Cycles: {summary['cycles']}")
        print(f"  Status: {summary['status']}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        state = self.state
        return {
            "cycles": state.cycle_count,
            "status": state.status.value,
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "i": state.i,
            "pc": state.pc,
            "sp": state.sp,
            "delay_timer": state.delay_timer,
            "sound_timer": state.sound_timer,
            "lit_pixels": state.display.lit_pixels(),
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
